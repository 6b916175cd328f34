"""
================================================================================
ChapterScout - Base Connector
================================================================================
Abstract base class for all manga source connectors.

Every source implements the same three-method contract:
  1. search(query) -> Find manga by title
  2. get_chapters(url) -> Get chapter list
  3. get_pages(url) -> Get image URLs

Optional capabilities are declared with flags instead of probing for methods:
  - supports_details          -> get_manga_details(url)
  - supports_page_resolution  -> get_page_url(url)

A source flagged metadata_only (rich home-page data, not a reading source)
is skipped by cross-source search.

RATE LIMITING:
  - Each connector spaces its own requests (min_request_interval)
  - Throttling is per instance and never blocks other connectors
================================================================================
"""

import logging
import os
import re
import threading
import time
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from .resilience import guarded_call

logger = logging.getLogger(__name__)


# =============================================================================
# LOGGING CALLBACK (avoids circular imports)
# =============================================================================

# Global logger callback - set by create_app() on startup
_log_callback: Optional[Callable[[str], None]] = None


def set_log_callback(callback: Optional[Callable[[str], None]]) -> None:
    """Set the logging callback function. Called by the app factory."""
    global _log_callback
    _log_callback = callback


def source_log(msg: str) -> None:
    """Log a message using the registered callback or the module logger."""
    if _log_callback:
        _log_callback(msg)
    else:
        logger.info(msg)


# =============================================================================
# ERRORS
# =============================================================================

class ProviderNotFound(LookupError):
    """No registered provider has the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Provider not found: {name}")
        self.name = name


class UnsupportedOperation(ValueError):
    """dispatch() was asked for an operation outside the connector contract."""


# =============================================================================
# ENUMS & DATA CLASSES
# =============================================================================

class SourceStatus(Enum):
    """Current operational status of a source."""
    ONLINE = "online"
    RATE_LIMITED = "rate_limited"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


@dataclass
class Candidate:
    """
    A provider's view of a work, as returned by search().

    Produced fresh on every search call. The core never persists it.
    """
    id: str                          # Unique ID (source-specific)
    title: str                       # Display title
    url: str = ""                    # Direct link to manga page
    cover_url: Optional[str] = None
    description: Optional[str] = None
    source_name: str = ""            # Provider name
    alt_titles: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dictionary for API responses."""
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "coverUrl": self.cover_url,
            "description": self.description,
            "sourceName": self.source_name,
            "altTitles": self.alt_titles,
        }


@dataclass
class ChapterRecord:
    """Standardized chapter information."""
    id: str                          # Chapter identifier
    number: str                      # Chapter number (string for "10.5")
    title: Optional[str] = None
    url: Optional[str] = None
    source_name: str = ""
    upload_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "sourceName": self.source_name,
            "uploadDate": self.upload_date,
        }


@dataclass
class Page:
    """Standardized page/image information."""
    url: str                         # Image URL (or reader page URL)
    index: int                       # Page number (0-indexed)
    referer: Optional[str] = None    # Required referer header
    needs_resolution: bool = False   # url is a reader page, see get_page_url()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "index": self.index,
            "referer": self.referer,
            "needsResolution": self.needs_resolution,
        }


@dataclass
class MangaDetails:
    """Rich metadata from a details-capable provider."""
    title: str
    all_titles: List[str] = field(default_factory=list)
    description: str = ""
    slug: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "allTitles": self.all_titles,
            "description": self.description,
            "slug": self.slug,
        }


# =============================================================================
# RATE LIMITER
# =============================================================================

class AsyncRateLimiter:
    """
    Minimum-spacing limiter for one connector.

    Slots are reserved under a thread lock before sleeping, so concurrent
    callers queue up one interval apart without holding an asyncio lock
    across event loops.
    """

    def __init__(self, min_interval: float = 0.1):
        self.min_interval = min_interval
        self._lock = threading.Lock()
        self._next_slot = 0.0

    async def wait(self) -> None:
        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.min_interval
        delay = slot - now
        if delay > 0:
            await asyncio.sleep(delay)


# =============================================================================
# BASE CONNECTOR CLASS
# =============================================================================

class BaseConnector(ABC):
    """
    Abstract base class for manga source connectors.

    INHERITANCE:
        All sources inherit from this class and implement the 3 required
        coroutines: search(), get_chapters(), get_pages()

    GUARDED SEARCH:
        guarded_search() races search() (with retry/backoff) against
        search_timeout. A slow source is abandoned and reads as no results.

    Example:
        class MangaDexConnector(BaseConnector):
            id = "mangadex"
            name = "MangaDex"
            min_request_interval = 0.25

            async def search(self, query):
                ...
    """

    # =========================================================================
    # SOURCE CONFIGURATION (Override in subclass)
    # =========================================================================

    id: str = "base"                 # Unique identifier
    name: str = "Base Source"        # Display name, registry key
    base_url: str = ""               # Root URL

    # Example: url_patterns = [r'https?://(?:www\.)?mangadex\.org/title/([a-f0-9-]+)']
    url_patterns: List[str] = []

    # Capability flags
    metadata_only: bool = False
    supports_details: bool = False
    supports_page_resolution: bool = False

    # Throttling and guards
    min_request_interval: float = 0.1
    request_timeout: float = 15.0
    search_timeout: float = 10.0
    max_retries: int = 2
    retry_base_delay: float = 1.0

    user_agent: str = "ChapterScout/1.0 (+https://github.com/chapterscout/chapterscout)"

    def __init__(self):
        self._status = SourceStatus.UNKNOWN
        self._last_error: Optional[str] = None
        self._failure_count = 0
        self._limiter = AsyncRateLimiter(self.min_request_interval)
        self._search_timeout = float(os.environ.get("PROVIDER_TIMEOUT", str(self.search_timeout)))
        self._max_retries = int(os.environ.get("PROVIDER_MAX_RETRIES", str(self.max_retries)))
        self._retry_base_delay = float(os.environ.get("PROVIDER_RETRY_DELAY", str(self.retry_base_delay)))

    # =========================================================================
    # HTTP HELPERS
    # =========================================================================

    def _headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Referer": self.base_url,
        }

    async def _get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Optional[httpx.Response]:
        """
        Make a throttled GET request.

        Returns the response on HTTP 200, otherwise None. Status tracking
        records 429s and repeated failures.
        """
        request_headers = self._headers()
        if headers:
            request_headers.update(headers)

        await self._limiter.wait()
        try:
            async with httpx.AsyncClient(
                timeout=self.request_timeout,
                follow_redirects=True
            ) as client:
                response = await client.get(url, params=params, headers=request_headers)
        except httpx.HTTPError as e:
            self._handle_error(str(e))
            return None

        if response.status_code == 200:
            self._handle_success()
            return response

        if response.status_code == 429:
            self._handle_rate_limit()
            self._log(f"Rate limited ({response.status_code})")
            return None

        self._handle_error(f"HTTP {response.status_code}")
        return None

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[Any]:
        response = await self._get(url, params, {"Accept": "application/json"})
        if response is None:
            return None
        try:
            return response.json()
        except ValueError:
            self._handle_error("Invalid JSON")
            return None

    async def _get_html(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        response = await self._get(url, params)
        if response is None:
            return None
        return response.text

    # =========================================================================
    # STATUS MANAGEMENT
    # =========================================================================

    def _handle_success(self) -> None:
        self._status = SourceStatus.ONLINE
        self._failure_count = 0

    def _handle_error(self, error: str) -> None:
        self._last_error = error
        self._failure_count += 1
        if self._failure_count >= 5:
            self._status = SourceStatus.OFFLINE

    def _handle_rate_limit(self) -> None:
        self._status = SourceStatus.RATE_LIMITED
        self._failure_count += 1

    def _log(self, msg: str) -> None:
        source_log(f"[{self.name}] {msg}")

    @property
    def status(self) -> SourceStatus:
        return self._status

    @property
    def is_available(self) -> bool:
        return self._status in (SourceStatus.ONLINE, SourceStatus.UNKNOWN)

    def get_health_info(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self._status.value,
            "is_available": self.is_available,
            "failure_count": self._failure_count,
            "last_error": self._last_error,
        }

    # =========================================================================
    # GUARDED CALLS
    # =========================================================================

    async def guarded_search(self, query: str) -> List[Candidate]:
        """
        search() with retry/backoff, raced against search_timeout.

        A timeout returns []. Exhausted retries re-raise the last error so
        the caller decides how to degrade.
        """
        return await guarded_call(
            lambda: self.search(query),
            timeout=self._search_timeout,
            retries=self._max_retries,
            base_delay=self._retry_base_delay,
            default=[],
            label=f"{self.name} search '{query}'",
        )

    # =========================================================================
    # ABSTRACT METHODS (Must implement in subclass)
    # =========================================================================

    @abstractmethod
    async def search(self, query: str) -> List[Candidate]:
        """Search for manga by title."""

    @abstractmethod
    async def get_chapters(self, url: str) -> List[ChapterRecord]:
        """Get all chapters for the manga page at url."""

    @abstractmethod
    async def get_pages(self, url: str) -> List[Page]:
        """Get page images for the chapter at url."""

    # =========================================================================
    # OPTIONAL CAPABILITIES (check the flags before calling)
    # =========================================================================

    async def get_manga_details(self, url: str) -> Optional[MangaDetails]:
        """Full details, including every known title. Needs supports_details."""
        return None

    async def get_page_url(self, url: str) -> str:
        """Resolve a reader page to its image URL. Needs supports_page_resolution."""
        return url

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def matches_url(self, url: str) -> bool:
        """Check if this source recognizes the given URL."""
        if not url:
            return False
        return any(re.search(pattern, url, re.IGNORECASE) for pattern in self.url_patterns)

    def extract_id_from_url(self, url: str) -> Optional[str]:
        """
        Extract the manga ID (first captured group) from a URL.

        Example:
            pattern: r'https?://mangadex\\.org/title/([a-f0-9-]+)'
            URL: 'https://mangadex.org/title/abc-123-def'
            Returns: 'abc-123-def'
        """
        for pattern in self.url_patterns:
            match = re.search(pattern, url or "", re.IGNORECASE)
            if match and match.groups():
                return match.group(1)
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name='{self.name}' status={self._status.value}>"
