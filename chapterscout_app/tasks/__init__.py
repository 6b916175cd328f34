"""
Background work for ChapterScout.

Usage:
    from chapterscout_app.tasks import run_scheduled_check

    result = await run_scheduled_check(store)
    if result is not None:
        print(result.new_chapters)
"""

from .updates import UpdateChecker, run_scheduled_check

__all__ = ['UpdateChecker', 'run_scheduled_check']
