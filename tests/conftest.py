import os
from typing import Dict, List, Optional

import pytest

# Keep log files out of the source tree during tests
os.environ.setdefault("LOG_DIR", os.path.join(os.path.dirname(__file__), ".logs"))

from sources.base import BaseConnector, Candidate, ChapterRecord, MangaDetails, Page  # noqa: E402


class FakeConnector(BaseConnector):
    """In-memory connector: canned search results per query, chapters per URL."""

    base_url = "https://fake.example"
    max_retries = 0
    retry_base_delay = 0.0
    search_timeout = 2.0
    min_request_interval = 0.0

    def __init__(
        self,
        name: str,
        results: Optional[Dict[str, List[str]]] = None,
        chapters: Optional[Dict[str, List[str]]] = None,
        fail_search: bool = False,
        fail_chapters: bool = False,
        metadata_only: bool = False,
        details: Optional[MangaDetails] = None,
        url_pattern: Optional[str] = None,
    ):
        self.name = name
        self.id = name.lower()
        self.metadata_only = metadata_only
        self.supports_details = details is not None
        self.url_patterns = [url_pattern] if url_pattern else []
        super().__init__()
        self.results = results or {}
        self.chapters = chapters or {}
        self.fail_search = fail_search
        self.fail_chapters = fail_chapters
        self.details = details
        self.search_calls: List[str] = []
        self.chapter_calls: List[str] = []

    async def search(self, query: str) -> List[Candidate]:
        self.search_calls.append(query)
        if self.fail_search:
            raise RuntimeError(f"{self.name} is down")
        return [
            Candidate(
                id=f"{self.id}-{i}",
                title=title,
                url=f"{self.base_url}/{self.id}/{i}",
                source_name=self.name,
            )
            for i, title in enumerate(self.results.get(query, []))
        ]

    async def get_chapters(self, url: str) -> List[ChapterRecord]:
        self.chapter_calls.append(url)
        if self.fail_chapters:
            raise RuntimeError(f"{self.name} chapters unavailable")
        return [
            ChapterRecord(id=f"{url}#{n}", number=n, source_name=self.name)
            for n in self.chapters.get(url, [])
        ]

    async def get_pages(self, url: str) -> List[Page]:
        return [Page(url=f"{url}/1.jpg", index=0)]

    async def get_manga_details(self, url: str) -> Optional[MangaDetails]:
        return self.details


def numbered(count: int) -> List[str]:
    """Chapter numbers "1".."count"."""
    return [str(n) for n in range(1, count + 1)]


@pytest.fixture
def fake_connector_cls():
    return FakeConnector
