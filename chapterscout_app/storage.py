"""
================================================================================
ChapterScout - Follow Store
================================================================================
Storage collaborator for the update checker.

FollowStore is the interface the checker talks to; MemoryStore is the
in-process implementation used by the web app and the tests. The store owns
every piece of mutable state (follows, progress, notifications, settings);
the checker only reads explicit settings from it at the start of a run.

Notification rules:
  - Duplicate (same type, work, source and new chapter) -> rejected
  - Older unread notifications for the same work are replaced
  - Newest first, capped at MAX_NOTIFICATIONS
================================================================================
"""

import logging
import threading
import time
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from .config import NOTIFICATION_CHECK_INTERVAL_HOURS
from .models import FollowedWork, Notification, ReadingProgress

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 100


class FollowStore(Protocol):
    """What the update checker needs from storage."""

    def get_follows(self) -> List[FollowedWork]: ...

    def update_manga_chapter_count(self, manga_id: str, source: str, chapter: float) -> None: ...

    def get_reading_progress(self, manga_id: str, source: str) -> Optional[ReadingProgress]: ...

    def add_notification(self, notification: Notification) -> bool: ...

    def get_enabled_notification_sources(self) -> Optional[List[str]]: ...

    def get_check_only_source_manga(self) -> bool: ...

    def should_check_for_notifications(self) -> bool: ...

    def set_next_notification_check(self) -> None: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MemoryStore:
    """
    In-memory FollowStore.

    Thread-safe for the Flask dev server's request threads; nothing is
    written to disk.
    """

    def __init__(
        self,
        follows: Optional[Iterable[FollowedWork]] = None,
        check_interval_hours: float = NOTIFICATION_CHECK_INTERVAL_HOURS
    ):
        self._lock = threading.Lock()
        self._follows: List[FollowedWork] = list(follows or [])
        self._progress: Dict[Tuple[str, str], ReadingProgress] = {}
        self._notifications: List[Notification] = []
        self._enabled_notification_sources: Optional[List[str]] = None
        self._check_only_source_manga = False
        self._next_notification_check = 0.0
        self.check_interval_hours = check_interval_hours

    # =========================================================================
    # FOLLOWS & PROGRESS
    # =========================================================================

    def get_follows(self) -> List[FollowedWork]:
        with self._lock:
            return [replace(work) for work in self._follows]

    def add_follow(self, work: FollowedWork) -> bool:
        with self._lock:
            if any(f.id == work.id and f.source == work.source for f in self._follows):
                return False
            self._follows.append(work)
            return True

    def remove_follow(self, manga_id: str, source: str) -> bool:
        with self._lock:
            remaining = [
                f for f in self._follows if not (f.id == manga_id and f.source == source)
            ]
            removed = len(remaining) != len(self._follows)
            self._follows = remaining
            return removed

    def update_manga_chapter_count(self, manga_id: str, source: str, chapter: float) -> None:
        with self._lock:
            for work in self._follows:
                if work.id == manga_id and work.source == source:
                    work.last_known_chapter = chapter
                    work.last_checked_at = _now_iso()
                    return

    def set_reading_progress(self, manga_id: str, source: str, chapter_number) -> None:
        with self._lock:
            self._progress[(source, manga_id)] = ReadingProgress(manga_id, source, chapter_number)

    def get_reading_progress(self, manga_id: str, source: str) -> Optional[ReadingProgress]:
        with self._lock:
            return self._progress.get((source, manga_id))

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    def add_notification(self, notification: Notification) -> bool:
        """Store a notification. False when an identical one already exists."""
        with self._lock:
            for existing in self._notifications:
                if (existing.type == notification.type
                        and existing.manga_id == notification.manga_id
                        and existing.source == notification.source
                        and existing.new_chapter == notification.new_chapter):
                    logger.info(
                        f"Duplicate notification skipped for {notification.title} "
                        f"(Ch. {notification.new_chapter})"
                    )
                    return False

            # Drop older, unread notifications for the same work
            self._notifications = [
                existing for existing in self._notifications
                if not (existing.type == notification.type
                        and existing.manga_id == notification.manga_id
                        and existing.source == notification.source)
                or existing.new_chapter > notification.new_chapter
                or existing.read
            ]

            if notification.id is None:
                notification.id = uuid.uuid4().hex
            self._notifications.insert(0, notification)
            del self._notifications[MAX_NOTIFICATIONS:]

        logger.info(f"New notification added for {notification.title} (Ch. {notification.new_chapter})")
        return True

    def get_notifications(self, unread_only: bool = False) -> List[Notification]:
        with self._lock:
            if unread_only:
                return [n for n in self._notifications if not n.read]
            return list(self._notifications)

    def mark_notification_read(self, notification_id: str) -> bool:
        with self._lock:
            for notification in self._notifications:
                if notification.id == notification_id:
                    notification.read = True
                    return True
            return False

    def mark_all_notifications_read(self) -> None:
        with self._lock:
            for notification in self._notifications:
                notification.read = True

    def get_unread_notification_count(self) -> int:
        with self._lock:
            return sum(1 for n in self._notifications if not n.read)

    def clear_notifications(self) -> None:
        with self._lock:
            self._notifications = []

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_enabled_notification_sources(self) -> Optional[List[str]]:
        """Provider names checked for notifications; None means all of them."""
        with self._lock:
            if self._enabled_notification_sources is None:
                return None
            return list(self._enabled_notification_sources)

    def set_enabled_notification_sources(self, sources: Optional[Iterable[str]]) -> None:
        with self._lock:
            self._enabled_notification_sources = list(sources) if sources is not None else None

    def get_check_only_source_manga(self) -> bool:
        return self._check_only_source_manga

    def set_check_only_source_manga(self, enabled: bool) -> None:
        self._check_only_source_manga = bool(enabled)

    def should_check_for_notifications(self) -> bool:
        return time.time() >= self._next_notification_check

    def set_next_notification_check(self) -> None:
        self._next_notification_check = time.time() + self.check_interval_hours * 3600
