"""
================================================================================
ChapterScout - Update Checker
================================================================================
Checks followed works for new chapters.

Flow (per work):
  1. Find the work on the reading sources (or use its own source only)
  2. Fetch chapter lists from the top 3 candidates in parallel
  3. Take the highest validated latest chapter
  4. Compare with what the user has read; if newer, record the chapter
     count and hand a notification to the store

Works are checked in batches of 3 with a pause between batches. A failure
on one work is counted and the run carries on.
================================================================================
"""

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from sources import ProviderRegistry, get_provider_registry

from ..config import CheckSettings
from ..consensus.latest import parse_chapter_number, validated_latest_chapter
from ..models import (
    FollowedWork, Notification, ScoredCandidate, UpdateCheckResult, UpdateProgress
)
from ..search.resolver import CrossSourceResolver
from ..storage import FollowStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UpdateProgress], None]


def _display_number(value: float):
    """105.0 -> 105, 10.5 stays 10.5."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class UpdateChecker:
    """
    Batch new-chapter checker.

    Usage:
        checker = UpdateChecker(get_provider_registry(), store)
        result = await checker.check_for_updates(store.get_follows(), CheckSettings())
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store: FollowStore,
        resolver: Optional[CrossSourceResolver] = None
    ):
        self.registry = registry
        self.store = store
        self.resolver = resolver or CrossSourceResolver(registry)

    async def check_for_updates(
        self,
        followed_works: List[FollowedWork],
        settings: Optional[CheckSettings] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> UpdateCheckResult:
        """
        Check every work for new chapters.

        Args:
            followed_works: Works to check
            settings: Sources, batching and source-only mode for this run
            progress_callback: Called after each work and once on completion

        Returns:
            Counters plus the notifications the store accepted
        """
        settings = settings or CheckSettings()
        result = UpdateCheckResult()
        total = len(followed_works)
        batch_size = max(1, settings.batch_size)

        logger.info(f"Checking {total} followed manga for updates...")

        for start in range(0, total, batch_size):
            batch = followed_works[start:start + batch_size]
            await asyncio.gather(
                *(self._check_one(work, settings, result, total, progress_callback) for work in batch)
            )

            if start + batch_size < total and settings.batch_delay > 0:
                await asyncio.sleep(settings.batch_delay)

        self._report(progress_callback, UpdateProgress(
            current=total, total=total, status="Update check completed", completed=True
        ))
        logger.info(
            f"Update check completed: {result.checked} checked, "
            f"{result.new_chapters} new chapters, {result.errors} errors"
        )
        return result

    # =========================================================================
    # PER-WORK CHECK
    # =========================================================================

    async def _check_one(
        self,
        work: FollowedWork,
        settings: CheckSettings,
        result: UpdateCheckResult,
        total: int,
        progress_callback: Optional[ProgressCallback]
    ) -> None:
        try:
            notification = await self._check_work(work, settings)
            if notification is not None and self.store.add_notification(notification):
                result.notifications.append(notification)
                result.new_chapters += 1
        except Exception as e:
            logger.error(f"Error checking {work.title}: {e}")
            result.errors += 1

        result.checked += 1
        self._report(progress_callback, UpdateProgress(
            current=result.checked, total=total,
            status=f"Checked {work.title}", manga_title=work.title
        ))

    async def _check_work(self, work: FollowedWork, settings: CheckSettings) -> Optional[Notification]:
        logger.info(f"Checking updates for: {work.title}")

        candidates = await self._candidates_for(work, settings)
        if not candidates:
            logger.info(f"No sources found for {work.title}")
            return None

        latest, best = await self._latest_chapter(work, candidates[:settings.max_sources])
        last_read = self._last_read_chapter(work)

        logger.info(f"{work.title}: Latest available: {latest}, Last read: {last_read}")
        if latest <= last_read:
            logger.info(f"No new chapters for {work.title} (latest: {latest}, last read: {last_read})")
            return None

        latest = _display_number(latest)
        last_read = _display_number(last_read)
        logger.info(f"New chapters found for {work.title}: {last_read} -> {latest}")

        self.store.update_manga_chapter_count(work.id, work.source, latest)

        return Notification(
            manga_id=work.id,
            title=work.title,
            message=f"New chapters available! ({last_read} -> {latest})",
            manga_cover=work.cover_url,
            old_chapter=last_read,
            new_chapter=latest,
            next_chapter_to_read=math.floor(last_read) + 1,
            source=best.provider_name if best else "Unknown",
            source_url=best.url if best else None,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    async def _candidates_for(self, work: FollowedWork, settings: CheckSettings) -> List[ScoredCandidate]:
        if settings.check_only_source_manga and work.source:
            return [ScoredCandidate(
                id=work.id,
                title=work.title,
                url=work.url,
                source_name=work.source,
                relevance_score=100.0,
                provider_name=work.source,
            )]
        return await self.resolver.resolve(
            work.title, work.url or None, settings.enabled_notification_sources
        )

    async def _latest_from(self, candidate: ScoredCandidate, work: FollowedWork) -> float:
        try:
            chapters = await self.registry.dispatch(candidate.provider_name, "get_chapters", candidate.url)
        except Exception as e:
            logger.warning(f"Failed to check {candidate.provider_name} for {work.title}: {e}")
            return 0.0
        return validated_latest_chapter(chapters or [])

    async def _latest_chapter(
        self,
        work: FollowedWork,
        candidates: List[ScoredCandidate]
    ) -> Tuple[float, Optional[ScoredCandidate]]:
        """Highest validated latest chapter; ties go to the better-ranked candidate."""
        latests = await asyncio.gather(*(self._latest_from(c, work) for c in candidates))

        best_latest = 0.0
        best: Optional[ScoredCandidate] = None
        for candidate, latest in zip(candidates, latests):
            if latest > best_latest:
                best_latest, best = latest, candidate
        return best_latest, best

    def _last_read_chapter(self, work: FollowedWork) -> float:
        """Reading progress, then imported progress, then last known chapter."""
        try:
            progress = self.store.get_reading_progress(work.id, work.source)
        except Exception as e:
            logger.warning(f"Could not read progress for {work.title}: {e}")
            progress = None

        if progress is not None:
            chapter = parse_chapter_number(progress.chapter_number)
            if chapter:
                return chapter

        imported = work.imported_reading_progress or {}
        chapter = parse_chapter_number(imported.get("chapterNumber"))
        if chapter:
            return chapter

        return parse_chapter_number(work.last_known_chapter) or 0.0

    @staticmethod
    def _report(progress_callback: Optional[ProgressCallback], progress: UpdateProgress) -> None:
        if progress_callback is None:
            return
        try:
            progress_callback(progress)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")


async def run_scheduled_check(
    store: FollowStore,
    force: bool = False,
    registry: Optional[ProviderRegistry] = None,
    progress_callback: Optional[ProgressCallback] = None
) -> Optional[UpdateCheckResult]:
    """
    Periodic entry point: honours the store's check cooldown.

    Returns None when the cooldown has not elapsed (and force is False).
    """
    if not force and not store.should_check_for_notifications():
        logger.info("Skipping update check; cooldown has not elapsed")
        return None

    store.set_next_notification_check()
    settings = CheckSettings(
        enabled_notification_sources=store.get_enabled_notification_sources(),
        check_only_source_manga=store.get_check_only_source_manga(),
    )
    checker = UpdateChecker(registry or get_provider_registry(), store)
    return await checker.check_for_updates(store.get_follows(), settings, progress_callback)
