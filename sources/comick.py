"""
================================================================================
ChapterScout - ComicK Connector
================================================================================
ComicK.io API connector.

ComicK supplies rich metadata (every localized and alternate title) but is
not used as a reading source, so it is flagged metadata_only and skipped
by cross-source search. Its job is get_manga_details(): the set of known
titles that drives cross-source resolution.
================================================================================
"""

from typing import Any, Dict, List, Optional

from .base import BaseConnector, Candidate, ChapterRecord, Page, MangaDetails
from .text_utils import extract_alternate_titles


class ComicKConnector(BaseConnector):
    """ComicK.io API connector (metadata provider)."""

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    id = "comick"
    name = "Comick"
    base_url = "https://api.comick.io"
    site_url = "https://comick.io"

    url_patterns = [
        r'https?://(?:www\.)?comick\.(?:io|cc|fun|app)/comic/([a-z0-9_-]+)',
    ]

    metadata_only = True
    supports_details = True

    min_request_interval = 0.35
    request_timeout = 30.0

    IMAGE_HOST = "https://meo.comick.pictures"
    CHAPTER_PAGE_SIZE = 300

    # =========================================================================
    # PARSING HELPERS
    # =========================================================================

    def _slug_from_url(self, url: str) -> str:
        return self.extract_id_from_url(url) or url.rstrip("/").split("/")[-1]

    def _parse_manga(self, comic: Dict[str, Any]) -> Candidate:
        """Parse ComicK comic data into a Candidate."""
        cover_url = None
        for cover in comic.get("md_covers") or []:
            b2key = cover.get("b2key", "")
            if b2key:
                cover_url = f"{self.IMAGE_HOST}/{b2key}"
                break

        slug = comic.get("slug") or comic.get("hid", "")
        alt_titles = [
            t.get("title") for t in comic.get("md_titles") or []
            if isinstance(t, dict) and t.get("title")
        ]

        return Candidate(
            id=comic.get("hid", "") or slug,
            title=comic.get("title", ""),
            url=f"{self.site_url}/comic/{slug}",
            cover_url=cover_url,
            description=comic.get("desc") or comic.get("description"),
            source_name=self.name,
            alt_titles=alt_titles,
        )

    def _parse_chapter(self, chapter: Dict[str, Any], slug: str) -> ChapterRecord:
        hid = chapter.get("hid", "")
        return ChapterRecord(
            id=hid,
            number=str(chapter.get("chap") or "0"),
            title=chapter.get("title"),
            url=f"{self.site_url}/comic/{slug}/{hid}",
            source_name=self.name,
            upload_date=chapter.get("created_at"),
        )

    def parse_details(self, data: Dict[str, Any]) -> Optional[MangaDetails]:
        """
        Build MangaDetails from a /comic/{slug} payload.

        Title order: main title, md_titles entries, then titles mined from
        the description. Duplicates are dropped.
        """
        comic = (data or {}).get("comic")
        if not comic:
            return None

        all_titles: List[str] = []

        def add(title: Optional[str]) -> None:
            if title and title not in all_titles:
                all_titles.append(title)

        add(comic.get("title"))
        for title_obj in comic.get("md_titles") or []:
            if isinstance(title_obj, dict):
                add(title_obj.get("title"))

        description = comic.get("desc") or comic.get("description") or ""
        for title in extract_alternate_titles(description):
            add(title)

        return MangaDetails(
            title=comic.get("title", ""),
            all_titles=all_titles,
            description=description,
            slug=comic.get("slug"),
        )

    # =========================================================================
    # PUBLIC API METHODS
    # =========================================================================

    async def search(self, query: str) -> List[Candidate]:
        """Search ComicK for manga."""
        self._log(f"Searching ComicK: {query}")
        data = await self._get_json(
            f"{self.base_url}/v1.0/search",
            {"q": query, "limit": 20, "page": 1, "t": "true"},
        )
        if not isinstance(data, list):
            return []

        results = []
        for comic in data:
            try:
                results.append(self._parse_manga(comic))
            except (AttributeError, TypeError) as e:
                self._log(f"Parse error: {e}")
        return results

    async def get_manga_details(self, url: str) -> Optional[MangaDetails]:
        slug = self._slug_from_url(url)
        data = await self._get_json(f"{self.base_url}/comic/{slug}")
        if not isinstance(data, dict):
            return None
        return self.parse_details(data)

    async def get_chapters(self, url: str) -> List[ChapterRecord]:
        """Get every English chapter, one entry per chapter number."""
        slug = self._slug_from_url(url)
        data = await self._get_json(f"{self.base_url}/comic/{slug}")
        comic = (data or {}).get("comic") if isinstance(data, dict) else None
        if not comic or not comic.get("hid"):
            return []
        hid = comic["hid"]

        all_chapters: List[Dict[str, Any]] = []
        page = 1
        while True:
            data = await self._get_json(
                f"{self.base_url}/comic/{hid}/chapters",
                {"limit": self.CHAPTER_PAGE_SIZE, "page": page, "lang": "en", "chap-order": 1},
            )
            chapters = (data or {}).get("chapters", []) if isinstance(data, dict) else []
            if not chapters:
                break
            all_chapters.extend(chapters)

            total = data.get("total", 0)
            if len(all_chapters) >= total or len(chapters) < self.CHAPTER_PAGE_SIZE:
                break
            page += 1

        unique: Dict[str, Dict[str, Any]] = {}
        for chapter in all_chapters:
            unique.setdefault(str(chapter.get("chap") or "0"), chapter)

        results = [self._parse_chapter(c, slug) for c in unique.values()]
        self._log(f"Found {len(results)} unique chapters")
        return results

    async def get_pages(self, url: str) -> List[Page]:
        chapter_hid = url.rstrip("/").split("/")[-1]
        data = await self._get_json(f"{self.base_url}/chapter/{chapter_hid}")
        if not isinstance(data, dict):
            return []

        chapter = data.get("chapter", data)
        images = chapter.get("md_images") or chapter.get("images") or []

        pages = []
        for i, img in enumerate(images):
            key = img.get("b2key") or img.get("name") if isinstance(img, dict) else None
            if key:
                pages.append(Page(url=f"{self.IMAGE_HOST}/{key}", index=i, referer=self.site_url))
        return pages
