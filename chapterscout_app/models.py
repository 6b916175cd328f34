"""
Data classes shared by the resolver, consensus engine and update checker.

to_dict() emits the camelCase keys the UI consumes.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from sources.base import Candidate


@dataclass
class ScoredCandidate(Candidate):
    """A Candidate ranked against every known title of the work being resolved."""
    relevance_score: float = 0.0
    provider_name: str = ""

    @classmethod
    def from_candidate(cls, candidate: Candidate, score: float, provider_name: str) -> "ScoredCandidate":
        base = {f.name: getattr(candidate, f.name) for f in fields(Candidate)}
        base["alt_titles"] = list(candidate.alt_titles)
        return cls(**base, relevance_score=score, provider_name=provider_name)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["relevanceScore"] = self.relevance_score
        data["providerName"] = self.provider_name
        return data


@dataclass
class SourceCount:
    source_name: str
    url: str
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"sourceName": self.source_name, "url": self.url, "count": self.count}


@dataclass
class ConsensusResult:
    count: int = 0
    confidence: int = 0
    sources: List[SourceCount] = field(default_factory=list)
    all_counts: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "confidence": self.confidence,
            "sources": [s.to_dict() for s in self.sources],
            "allCounts": list(self.all_counts),
        }


@dataclass
class ChapterValidation:
    is_reasonable: bool
    suggested_count: int
    confidence: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isReasonable": self.is_reasonable,
            "suggestedCount": self.suggested_count,
            "confidence": self.confidence,
        }


@dataclass
class ReadingProgress:
    manga_id: str
    source: str
    chapter_number: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"mangaId": self.manga_id, "source": self.source, "chapterNumber": self.chapter_number}


@dataclass
class FollowedWork:
    """A followed title. Owned by the storage collaborator; read-only here."""
    id: str
    source: str
    title: str
    url: str = ""
    last_known_chapter: float = 0
    imported_reading_progress: Optional[Dict[str, Any]] = None
    status: str = "reading"
    cover_url: Optional[str] = None
    last_checked_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FollowedWork":
        return cls(
            id=str(data["id"]),
            source=data.get("source", ""),
            title=data.get("title", ""),
            url=data.get("url", ""),
            last_known_chapter=data.get("lastKnownChapter") or 0,
            imported_reading_progress=data.get("importedReadingProgress"),
            status=data.get("status", "reading"),
            cover_url=data.get("coverUrl"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "title": self.title,
            "url": self.url,
            "lastKnownChapter": self.last_known_chapter,
            "importedReadingProgress": self.imported_reading_progress,
            "status": self.status,
            "coverUrl": self.cover_url,
            "lastCheckedAt": self.last_checked_at,
        }


@dataclass
class Notification:
    manga_id: str
    title: str
    old_chapter: float
    new_chapter: float
    next_chapter_to_read: int
    source: str
    source_url: Optional[str]
    created_at: str
    message: str = ""
    manga_cover: Optional[str] = None
    type: str = "new_chapter"
    read: bool = False
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "mangaId": self.manga_id,
            "title": self.title,
            "message": self.message,
            "mangaCover": self.manga_cover,
            "oldChapter": self.old_chapter,
            "newChapter": self.new_chapter,
            "nextChapterToRead": self.next_chapter_to_read,
            "source": self.source,
            "sourceUrl": self.source_url,
            "createdAt": self.created_at,
            "read": self.read,
        }


@dataclass
class UpdateProgress:
    current: int
    total: int
    status: str
    manga_title: Optional[str] = None
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"current": self.current, "total": self.total, "status": self.status}
        if self.manga_title is not None:
            data["mangaTitle"] = self.manga_title
        if self.completed:
            data["completed"] = True
        return data


@dataclass
class UpdateCheckResult:
    checked: int = 0
    new_chapters: int = 0
    errors: int = 0
    notifications: List[Notification] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked": self.checked,
            "newChapters": self.new_chapters,
            "errors": self.errors,
            "notifications": [n.to_dict() for n in self.notifications],
        }
