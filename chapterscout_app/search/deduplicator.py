"""
================================================================================
ChapterScout - Search Result Deduplicator
================================================================================
Groups duplicate works from different sources using fuzzy title matching.

Problem:
  A home-page search for "Solo Leveling" returns the same work once per
  reading source.

Solution:
  1. Group results by title similarity (85% threshold, rapidfuzz)
  2. Rank sources by priority (MangaDex > MangaHere > ...)
  3. Return one unified result per work with its source options

This is display grouping only; the resolver and the consensus engine work
on the raw, unmerged candidates.
================================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from rapidfuzz import fuzz

from sources import Candidate, ProviderRegistry

logger = logging.getLogger(__name__)

SEARCH_PER_PROVIDER_LIMIT = 8


@dataclass
class SourceOption:
    """A source where this work is available."""
    source_name: str
    manga_id: str
    url: Optional[str] = None
    priority: int = 999  # lower = preferred

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceName": self.source_name,
            "mangaId": self.manga_id,
            "url": self.url,
            "priority": self.priority,
        }


@dataclass
class UnifiedSearchResult:
    """Deduplicated search result with one option per source."""
    title: str
    sources: List[SourceOption] = field(default_factory=list)
    primary_source: str = ""
    cover_url: Optional[str] = None
    description: Optional[str] = None
    alt_titles: List[str] = field(default_factory=list)
    match_confidence: float = 100.0  # lowest similarity to the first-seen title

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "primarySource": self.primary_source,
            "sources": [s.to_dict() for s in self.sources],
            "coverUrl": self.cover_url,
            "description": self.description,
            "altTitles": list(self.alt_titles),
            "matchConfidence": self.match_confidence,
        }


class SearchDeduplicator:
    """
    Deduplicates search results using fuzzy title matching.

    Algorithm:
      1. Normalize all titles (lowercase, remove special chars and articles)
      2. Group results whose best rapidfuzz score reaches the threshold
      3. Within each group, rank sources by priority
    """

    SOURCE_PRIORITY = {
        'MangaDex': 1,     # Official API, reliable
        'MangaHere': 2,    # Wide coverage
    }

    def __init__(self, similarity_threshold: float = 85.0):
        self.similarity_threshold = similarity_threshold

    @staticmethod
    def normalize_title(title: str) -> str:
        title = title.lower()
        title = re.sub(r'\b(the|a|an)\b', '', title)
        title = re.sub(r'[^a-z0-9\s]', '', title)
        title = re.sub(r'\s+', ' ', title)
        return title.strip()

    def calculate_similarity(self, title1: str, title2: str) -> float:
        """Highest of plain, token-sort and token-set ratios (0-100)."""
        norm1 = self.normalize_title(title1)
        norm2 = self.normalize_title(title2)
        return max(
            fuzz.ratio(norm1, norm2),
            fuzz.token_sort_ratio(norm1, norm2),
            fuzz.token_set_ratio(norm1, norm2),
        )

    def deduplicate(self, results: List[Candidate]) -> List[UnifiedSearchResult]:
        """Group results into unified entries, first-seen order."""
        if not results:
            return []

        grouped: Set[int] = set()
        unified_results: List[UnifiedSearchResult] = []

        for i, result in enumerate(results):
            if i in grouped:
                continue

            group: List[Candidate] = [result]
            grouped.add(i)
            match_confidence = 100.0

            for j, other in enumerate(results):
                if j <= i or j in grouped:
                    continue

                similarity = self.calculate_similarity(result.title, other.title)
                if similarity >= self.similarity_threshold:
                    group.append(other)
                    grouped.add(j)
                    match_confidence = min(match_confidence, similarity)
                    logger.debug(
                        f"Grouped '{other.title}' with '{result.title}' "
                        f"(similarity: {similarity:.1f}%)"
                    )

            unified_results.append(self._merge_group(group, match_confidence))

        logger.info(
            f"Deduplicated {len(results)} results into {len(unified_results)} unique manga"
        )
        return unified_results

    def _priority(self, candidate: Candidate) -> int:
        return self.SOURCE_PRIORITY.get(candidate.source_name, 999)

    def _merge_group(self, group: List[Candidate], match_confidence: float = 100.0) -> UnifiedSearchResult:
        sorted_group = sorted(group, key=self._priority)
        primary = sorted_group[0]

        sources = [
            SourceOption(
                source_name=result.source_name,
                manga_id=result.id,
                url=result.url,
                priority=self._priority(result),
            )
            for result in sorted_group
        ]

        alt_titles: List[str] = []
        for result in sorted_group:
            if result.title != primary.title and result.title not in alt_titles:
                alt_titles.append(result.title)
            for alt in result.alt_titles:
                if alt not in alt_titles and alt != primary.title:
                    alt_titles.append(alt)

        return UnifiedSearchResult(
            title=primary.title,
            sources=sources,
            primary_source=primary.source_name,
            cover_url=primary.cover_url or next((r.cover_url for r in sorted_group if r.cover_url), None),
            description=primary.description,
            alt_titles=alt_titles,
            match_confidence=match_confidence,
        )


async def search_manga(
    registry: ProviderRegistry,
    query: str,
    limit: int = 20
) -> List[UnifiedSearchResult]:
    """Search every reading source and group the hits by work."""
    raw_results = await registry.search_all(query, SEARCH_PER_PROVIDER_LIMIT)
    logger.info(f"Got {len(raw_results)} raw results for '{query}'")
    return SearchDeduplicator().deduplicate(raw_results)[:limit]
