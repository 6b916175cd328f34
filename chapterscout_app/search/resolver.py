"""
================================================================================
ChapterScout - Cross-Source Resolver
================================================================================
Finds one work across every reading source.

Flow:
  1. Gather every known title (metadata provider details when a URL is known)
  2. Pick the top 5 search-friendly titles
  3. Query each reading source in parallel; within a source, try titles in
     order and stop once one produces an excellent (>= 85) match
  4. Keep confident (>= 60) matches, scored against ALL known titles
  5. Flatten and sort by relevance (no cross-source merging)

One failing source never affects the others; resolve() never raises for
provider failures.
================================================================================
"""

import asyncio
import logging
from typing import Iterable, List, Optional

from sources import BaseConnector, ProviderRegistry

from ..models import ScoredCandidate
from .similarity import best_similarity
from .titles import MAX_SEARCH_TITLES, select_best_titles

logger = logging.getLogger(__name__)

KEEP_THRESHOLD = 60.0
EXCELLENT_THRESHOLD = 85.0


class CrossSourceResolver:
    """
    Locate a work on every enabled reading source.

    Usage:
        resolver = CrossSourceResolver(get_provider_registry())
        candidates = await resolver.resolve("Solo Leveling", comick_url)
    """

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    async def resolve(
        self,
        primary_title: str,
        known_url: Optional[str] = None,
        enabled_provider_names: Optional[Iterable[str]] = None
    ) -> List[ScoredCandidate]:
        """
        Search every enabled reading source for primary_title.

        Args:
            primary_title: Title the work is followed under
            known_url: URL of the work on some source, used to fetch
                alternate titles when that source supports details
            enabled_provider_names: Sources to query (None = all)

        Returns:
            Scored candidates, best first
        """
        known_titles = await self._known_titles(primary_title, known_url)
        search_titles = select_best_titles(known_titles, MAX_SEARCH_TITLES)

        providers = self.registry.search_providers(enabled_provider_names)
        logger.info(
            f"Resolving '{primary_title}' across {len(providers)} sources "
            f"with {len(search_titles)} titles"
        )

        batches = await asyncio.gather(
            *(self._resolve_in(provider, search_titles, known_titles) for provider in providers)
        )

        candidates: List[ScoredCandidate] = []
        for batch in batches:
            candidates.extend(batch)
        candidates.sort(key=lambda c: c.relevance_score, reverse=True)

        logger.info(f"Total relevant results for '{primary_title}': {len(candidates)}")
        return candidates

    async def _known_titles(self, primary_title: str, known_url: Optional[str]) -> List[str]:
        """Every title the work is known by; falls back to [primary_title]."""
        provider = self.registry.provider_for_url(known_url)
        if provider is None or not provider.supports_details:
            return [primary_title]

        try:
            details = await self.registry.dispatch(provider.name, "get_manga_details", known_url)
        except Exception as e:
            logger.error(f"Failed to get alternative titles from {provider.name}: {e}")
            return [primary_title]

        if details and details.all_titles:
            logger.info(f"Found {len(details.all_titles)} alternative titles via {provider.name}")
            return list(details.all_titles)
        return [primary_title]

    async def _resolve_in(
        self,
        provider: BaseConnector,
        search_titles: List[str],
        known_titles: List[str]
    ) -> List[ScoredCandidate]:
        try:
            return await self._search_titles(provider, search_titles, known_titles)
        except Exception as e:
            logger.error(f"Search failed for {provider.name}: {e}")
            return []

    async def _search_titles(
        self,
        provider: BaseConnector,
        search_titles: List[str],
        known_titles: List[str]
    ) -> List[ScoredCandidate]:
        best_results: List[ScoredCandidate] = []
        best_score = 0.0

        for title in search_titles:
            try:
                results = await provider.guarded_search(title)
            except Exception as e:
                logger.error(f"Search term '{title}' failed for {provider.name}: {e}")
                continue

            if not results:
                continue

            scored = [
                ScoredCandidate.from_candidate(
                    result, best_similarity(known_titles, result.title), provider.name
                )
                for result in results
            ]
            top_score = max(candidate.relevance_score for candidate in scored)

            if top_score > best_score:
                best_results = [c for c in scored if c.relevance_score >= KEEP_THRESHOLD]
                best_score = top_score

            if top_score >= EXCELLENT_THRESHOLD:
                logger.info(f"{provider.name} found excellent match ({top_score:.0f}%) with '{title}'")
                break

        logger.info(
            f"{provider.name} returned {len(best_results)} relevant results "
            f"(best score: {best_score:.0f})"
        )
        return best_results
