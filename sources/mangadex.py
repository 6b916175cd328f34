"""
================================================================================
ChapterScout - MangaDex Connector
================================================================================
MangaDex API v5 connector.

MANGADEX API RULES:
  - User-Agent MUST identify the app (no browser spoofing)
  - 5 requests/second at their load balancer; we stay well below
  - Use /at-home/server/ for page CDN URLs, never hardcode image hosts

MangaDex also exposes altTitles, so it can feed the known-title set when a
followed work came from MangaDex.
================================================================================
"""

from typing import Any, Dict, List, Optional

from .base import BaseConnector, Candidate, ChapterRecord, Page, MangaDetails


class MangaDexConnector(BaseConnector):
    """MangaDex API connector."""

    id = "mangadex"
    name = "MangaDex"
    base_url = "https://api.mangadex.org"
    site_url = "https://mangadex.org"

    url_patterns = [
        r'https?://(?:www\.)?mangadex\.org/title/([a-f0-9-]+)',
    ]

    supports_details = True

    # Conservative spacing, well below their 5/sec limit
    min_request_interval = 0.25
    request_timeout = 20.0

    CONTENT_RATINGS = ["safe", "suggestive"]
    PAGE_SIZE = 100  # MangaDex max

    # =========================================================================
    # PARSING HELPERS
    # =========================================================================

    def _manga_id(self, url: str) -> str:
        return self.extract_id_from_url(url) or url.rstrip("/").split("/")[-1]

    def _extract_cover(self, manga: Dict[str, Any]) -> Optional[str]:
        manga_id = manga.get("id", "")
        for rel in manga.get("relationships", []):
            if rel.get("type") == "cover_art":
                filename = (rel.get("attributes") or {}).get("fileName")
                if filename:
                    return f"https://uploads.mangadex.org/covers/{manga_id}/{filename}.256.jpg"
        return None

    @staticmethod
    def _pick_title(titles: Dict[str, str]) -> str:
        """Prefer English, then romaji, then Japanese."""
        return (
            titles.get("en")
            or titles.get("ja-ro")
            or titles.get("ja")
            or next(iter(titles.values()), "Unknown")
        )

    def _parse_manga(self, manga: Dict[str, Any]) -> Candidate:
        attrs = manga.get("attributes", {})
        desc = attrs.get("description") or {}
        alt_titles = [
            value for alt in attrs.get("altTitles", []) for value in alt.values()
        ]
        return Candidate(
            id=manga.get("id", ""),
            title=self._pick_title(attrs.get("title") or {}),
            url=f"{self.site_url}/title/{manga.get('id')}",
            cover_url=self._extract_cover(manga),
            description=desc.get("en") or next(iter(desc.values()), None),
            source_name=self.name,
            alt_titles=alt_titles,
        )

    def _parse_chapter(self, chapter: Dict[str, Any]) -> ChapterRecord:
        attrs = chapter.get("attributes", {})
        return ChapterRecord(
            id=chapter.get("id", ""),
            number=attrs.get("chapter") or "0",
            title=attrs.get("title"),
            url=f"{self.site_url}/chapter/{chapter.get('id')}",
            source_name=self.name,
            upload_date=attrs.get("publishAt"),
        )

    # =========================================================================
    # PUBLIC API METHODS
    # =========================================================================

    async def search(self, query: str) -> List[Candidate]:
        """Search MangaDex for manga by title."""
        self._log(f"Searching MangaDex: {query}")
        data = await self._get_json(f"{self.base_url}/manga", {
            "title": query,
            "limit": 15,
            "includes[]": ["cover_art"],
            "contentRating[]": self.CONTENT_RATINGS,
            "order[relevance]": "desc",
        })
        if not isinstance(data, dict):
            return []
        return [self._parse_manga(m) for m in data.get("data", [])]

    async def get_manga_details(self, url: str) -> Optional[MangaDetails]:
        data = await self._get_json(f"{self.base_url}/manga/{self._manga_id(url)}")
        if not isinstance(data, dict) or "data" not in data:
            return None

        candidate = self._parse_manga(data["data"])
        all_titles = [candidate.title]
        for title in candidate.alt_titles:
            if title not in all_titles:
                all_titles.append(title)
        return MangaDetails(
            title=candidate.title,
            all_titles=all_titles,
            description=candidate.description or "",
            slug=candidate.id,
        )

    async def get_chapters(self, url: str) -> List[ChapterRecord]:
        """
        Get all English chapters for a manga.

        Pages through the feed (100 per request) and keeps the first upload
        of each chapter number when several groups translated it.
        """
        manga_id = self._manga_id(url)
        all_chapters: List[Dict[str, Any]] = []
        offset = 0

        while True:
            data = await self._get_json(f"{self.base_url}/chapter", {
                "manga": manga_id,
                "translatedLanguage[]": ["en"],
                "limit": self.PAGE_SIZE,
                "offset": offset,
                "order[chapter]": "asc",
            })
            if not isinstance(data, dict):
                break

            chapters = data.get("data", [])
            all_chapters.extend(chapters)

            total = data.get("total", 0)
            if offset + len(chapters) >= total or len(chapters) < self.PAGE_SIZE:
                break
            offset += self.PAGE_SIZE

        unique: Dict[str, Dict[str, Any]] = {}
        for chapter in all_chapters:
            number = (chapter.get("attributes") or {}).get("chapter")
            if number and number not in unique:
                unique[number] = chapter

        results = [self._parse_chapter(c) for c in unique.values()]
        self._log(f"Found {len(results)} unique chapters")
        return results

    async def get_pages(self, url: str) -> List[Page]:
        chapter_id = url.rstrip("/").split("/")[-1]
        data = await self._get_json(f"{self.base_url}/at-home/server/{chapter_id}")
        if not isinstance(data, dict):
            return []

        base_url = data.get("baseUrl", "")
        chapter = data.get("chapter", {})
        hash_code = chapter.get("hash", "")
        return [
            Page(url=f"{base_url}/data/{hash_code}/{filename}", index=i, referer=f"{self.site_url}/")
            for i, filename in enumerate(chapter.get("data", []))
        ]
