"""
================================================================================
ChapterScout - Provider Registry
================================================================================
Central registry for all manga source connectors.

RESPONSIBILITIES:
  - Holds the fixed set of connectors, keyed by (case-sensitive) name
  - Fans searches out to every reading source concurrently
  - Dispatches named operations to one connector

FAILURE ISOLATION:
  Fan-out never fails because one connector did. A connector that raises
  or times out contributes an empty list; its siblings are unaffected.
  dispatch() raises only when the provider name is unknown.
================================================================================
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from .base import (
    BaseConnector, Candidate, ChapterRecord, Page, MangaDetails, SourceStatus,
    ProviderNotFound, UnsupportedOperation, set_log_callback, source_log
)
from .comick import ComicKConnector
from .mangadex import MangaDexConnector
from .mangahere import MangaHereConnector

logger = logging.getLogger(__name__)

DEFAULT_CONNECTORS = (ComicKConnector, MangaDexConnector, MangaHereConnector)

OPERATIONS = ("search", "get_chapters", "get_pages", "get_manga_details", "get_page_url")


class ProviderRegistry:
    """
    Registry of manga source connectors.

    Usage:
        registry = ProviderRegistry()
        results = await registry.search_all("one piece", 8)
        chapters = await registry.dispatch("MangaDex", "get_chapters", url)
    """

    def __init__(self, connectors: Optional[Iterable[BaseConnector]] = None):
        if connectors is None:
            connectors = [connector_cls() for connector_cls in DEFAULT_CONNECTORS]
        self._providers: Dict[str, BaseConnector] = {}
        for connector in connectors:
            self._providers[connector.name] = connector

    # =========================================================================
    # LOOKUP
    # =========================================================================

    @property
    def providers(self) -> List[BaseConnector]:
        return list(self._providers.values())

    def list_providers(self) -> List[Dict[str, str]]:
        """Static capability listing for display."""
        return [
            {"name": provider.name, "baseUrl": provider.base_url}
            for provider in self._providers.values()
        ]

    def get(self, name: str) -> Optional[BaseConnector]:
        return self._providers.get(name)

    def by_name(self, name: str) -> BaseConnector:
        """Exact, case-sensitive lookup. Raises ProviderNotFound."""
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderNotFound(name)
        return provider

    def search_providers(self, enabled_names: Optional[Iterable[str]] = None) -> List[BaseConnector]:
        """Reading sources (never metadata-only), optionally limited to enabled_names."""
        enabled = set(enabled_names) if enabled_names is not None else None
        return [
            provider for provider in self._providers.values()
            if not provider.metadata_only and (enabled is None or provider.name in enabled)
        ]

    @property
    def metadata_provider(self) -> Optional[BaseConnector]:
        for provider in self._providers.values():
            if provider.metadata_only:
                return provider
        return None

    def provider_for_url(self, url: Optional[str]) -> Optional[BaseConnector]:
        """The connector whose url_patterns recognize url, if any."""
        if not url:
            return None
        for provider in self._providers.values():
            if provider.matches_url(url):
                return provider
        return None

    # =========================================================================
    # FAN-OUT
    # =========================================================================

    async def _search_one(
        self,
        provider: BaseConnector,
        query: str,
        limit: int
    ) -> List[Candidate]:
        try:
            results = await provider.guarded_search(query)
        except Exception as e:
            logger.error(f"Search failed for {provider.name}: {e}")
            return []
        return list(results or [])[:limit]

    async def _fan_out(
        self,
        providers: List[BaseConnector],
        query: str,
        limit: int
    ) -> List[Candidate]:
        batches = await asyncio.gather(
            *(self._search_one(provider, query, limit) for provider in providers)
        )
        combined: List[Candidate] = []
        for batch in batches:
            combined.extend(batch)
        return combined

    async def search_all(self, query: str, per_provider_limit: int = 10) -> List[Candidate]:
        """
        Search every reading source concurrently.

        Results are truncated per provider and concatenated in registry
        order. No interleaving or re-sorting happens here.
        """
        return await self._fan_out(self.search_providers(), query, per_provider_limit)

    async def search_enabled(
        self,
        query: str,
        enabled_names: Iterable[str],
        per_provider_limit: int = 10
    ) -> List[Candidate]:
        """
        Search only the named providers.

        Falls back to the metadata provider when no enabled name is known.
        """
        enabled = set(enabled_names)
        providers = [p for p in self._providers.values() if p.name in enabled]
        if not providers:
            fallback = self.metadata_provider
            logger.warning("No enabled sources found, falling back to metadata provider")
            providers = [fallback] if fallback else []
        return await self._fan_out(providers, query, per_provider_limit)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    async def dispatch(self, provider_name: str, operation: str, *args: Any) -> Any:
        """
        Run one contract operation on the named provider.

        The provider's own result (including an empty list) is returned
        unchanged. Missing optional capabilities degrade: details -> None,
        page resolution -> the input URL.
        """
        provider = self.by_name(provider_name)
        if operation not in OPERATIONS:
            raise UnsupportedOperation(f"Unknown provider operation: {operation}")

        if operation == "get_manga_details" and not provider.supports_details:
            return None
        if operation == "get_page_url" and not provider.supports_page_resolution:
            return args[0] if args else None

        return await getattr(provider, operation)(*args)

    async def resolve_page_url(self, page_url: str, provider_name: str) -> str:
        """Best-effort image URL resolution; any failure returns page_url."""
        try:
            resolved = await self.dispatch(provider_name, "get_page_url", page_url)
        except Exception as e:
            logger.error(f"Failed to resolve page URL via {provider_name}: {e}")
            return page_url
        return resolved or page_url

    # =========================================================================
    # HEALTH
    # =========================================================================

    def get_health_report(self) -> Dict[str, Any]:
        return {
            "sources": [p.get_health_info() for p in self._providers.values()],
            "available_count": sum(1 for p in self._providers.values() if p.is_available),
            "total_count": len(self._providers),
        }


# =============================================================================
# GLOBAL SINGLETON
# =============================================================================

_registry: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    """Get or create the global ProviderRegistry instance."""
    global _registry
    if _registry is None:
        _registry = ProviderRegistry()
    return _registry


__all__ = [
    "BaseConnector", "Candidate", "ChapterRecord", "Page", "MangaDetails",
    "SourceStatus", "ProviderNotFound", "UnsupportedOperation",
    "ProviderRegistry", "DEFAULT_CONNECTORS", "OPERATIONS",
    "get_provider_registry", "set_log_callback", "source_log",
]
