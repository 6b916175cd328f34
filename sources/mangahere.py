"""
================================================================================
ChapterScout - MangaHere Connector
================================================================================
MangaHere (mangahere.cc) scraping connector.

FEATURES:
  - Search, chapter listings and page listings from HTML
  - Page resolution: the classic reader serves one page per URL, so
    get_pages() may return reader-page URLs flagged needs_resolution and
    get_page_url() turns each into its image URL

Parsing lives in parse_* methods that take raw HTML so it can be tested
without the network.
================================================================================
"""

import re
from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .base import BaseConnector, Candidate, ChapterRecord, Page


class MangaHereConnector(BaseConnector):
    """MangaHere scraper connector."""

    id = "mangahere"
    name = "MangaHere"
    base_url = "https://www.mangahere.cc"

    url_patterns = [
        r'https?://(?:www\.|m\.)?mangahere\.(?:cc|io|onl)/manga/([a-z0-9_-]+)',
    ]

    supports_page_resolution = True

    min_request_interval = 0.5
    request_timeout = 20.0

    user_agent = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    SEARCH_LIMIT = 20

    # =========================================================================
    # PARSING HELPERS
    # =========================================================================

    @staticmethod
    def _extract_chapter_num(text: str) -> str:
        match = re.search(r'[Cc]h(?:apter)?\.?\s*(\d+(?:\.\d+)?)', text)
        return match.group(1) if match else "0"

    def parse_search_html(self, html: str) -> List[Candidate]:
        soup = BeautifulSoup(html, "html.parser")
        items = soup.select(".manga-list-4-item-container li, .manga-list-4-list li, .manga_list-sbs li")

        results = []
        for item in items[:self.SEARCH_LIMIT]:
            link = item.select_one("a.manga-list-4-item-title, .manga-list-4-item-title a, p.title a, a")
            if not link:
                continue

            manga_url = urljoin(self.base_url, link.get("href", ""))
            title = link.get("title") or link.get_text(strip=True)
            if not title:
                continue

            img = item.select_one("img")
            cover = img.get("src") or img.get("data-src") if img else None

            results.append(Candidate(
                id=manga_url.rstrip("/").split("/")[-1],
                title=title.strip(),
                url=manga_url,
                cover_url=urljoin(self.base_url, cover) if cover else None,
                source_name=self.name,
            ))
        return results

    def parse_chapters_html(self, html: str) -> List[ChapterRecord]:
        soup = BeautifulSoup(html, "html.parser")

        results = []
        for item in soup.select(".detail-main-list li, ul.chlist li"):
            link = item.select_one("a")
            if not link:
                continue

            chapter_url = urljoin(self.base_url, link.get("href", ""))
            title_el = item.select_one(".title3, .detail-main-list-main p")
            chapter_title = (title_el or link).get_text(strip=True)
            date_el = item.select_one(".title2, .chapterdate")

            results.append(ChapterRecord(
                id=chapter_url,
                number=self._extract_chapter_num(link.get("href", "") + " " + chapter_title),
                title=chapter_title,
                url=chapter_url,
                source_name=self.name,
                upload_date=date_el.get_text(strip=True) if date_el else None,
            ))
        return results

    def parse_pages_html(self, html: str, chapter_url: str) -> List[Page]:
        """
        Image pages when the reader inlines them, otherwise one reader-page
        URL per option in the page selector.
        """
        soup = BeautifulSoup(html, "html.parser")

        images = soup.select("#viewer img, .reader-main-img")
        pages = []
        for img in images:
            src = img.get("data-original") or img.get("data-src") or img.get("src")
            if src:
                pages.append(Page(url=urljoin(chapter_url, src), index=len(pages), referer=chapter_url))
        if pages:
            return pages

        for option in soup.select("select.wid60 option, .pager-list-left a[data-page]"):
            value = option.get("value") or option.get("href")
            if not value or value.startswith("javascript"):
                continue
            page_url = urljoin(chapter_url, value)
            if any(p.url == page_url for p in pages):
                continue
            pages.append(Page(url=page_url, index=len(pages), referer=chapter_url, needs_resolution=True))
        return pages

    def parse_page_image(self, html: str, page_url: str) -> str:
        soup = BeautifulSoup(html, "html.parser")
        img = soup.select_one("#image, img.reader-main-img")
        src = img.get("src") if img else None
        return urljoin(page_url, src) if src else page_url

    # =========================================================================
    # PUBLIC API METHODS
    # =========================================================================

    async def search(self, query: str) -> List[Candidate]:
        self._log(f"Searching MangaHere: {query}")
        html = await self._get_html(f"{self.base_url}/search", {"title": query, "page": 1})
        if not html:
            return []
        return self.parse_search_html(html)

    async def get_chapters(self, url: str) -> List[ChapterRecord]:
        if not url.startswith("http"):
            url = f"{self.base_url}/manga/{url}/"
        html = await self._get_html(url)
        if not html:
            return []
        results = self.parse_chapters_html(html)
        self._log(f"Found {len(results)} chapters")
        return results

    async def get_pages(self, url: str) -> List[Page]:
        html = await self._get_html(url)
        if not html:
            return []
        return self.parse_pages_html(html, url)

    async def get_page_url(self, url: str) -> str:
        if url.startswith("//"):
            return "https:" + url
        html = await self._get_html(url)
        if not html:
            return url
        return self.parse_page_image(html, url)
