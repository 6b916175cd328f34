"""
Validated latest-chapter extraction.

Chapter lists scraped from reading sites carry the occasional bogus entry:
a mis-parsed "Chapter 5000", a promo chapter far out of sequence. The
latest chapter is taken as the highest number that steps down plausibly to
its neighbour, judged against the typical gap among the top five.
"""

import math
import re
from typing import Any, Iterable, List, Optional

SMALL_LIST_SIZE = 5       # at or below this, trust the maximum
REASONABLE_GAP = 10       # gaps above this are ignored when averaging
MIN_REASONABLE_DIFF = 3
GAP_MULTIPLIER = 2

_LEADING_NUMBER = re.compile(r'^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)')


def parse_chapter_number(value: Any) -> Optional[float]:
    """
    Leniently parse a chapter number ("12", "12.5", "12.5 - Extra").

    Returns None when no finite leading number is present.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        match = _LEADING_NUMBER.match(str(value))
        if not match:
            return None
        number = float(match.group(1))
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _raw_number(item: Any) -> Any:
    if isinstance(item, dict):
        return item.get("number")
    return getattr(item, "number", item)


def validated_latest_chapter(chapters: Iterable[Any]) -> float:
    """
    Most plausible latest chapter of a list of ChapterRecords, dicts with a
    "number" key, or raw numbers/strings. 0.0 when nothing parses.
    """
    numbers: List[float] = []
    for item in chapters:
        number = parse_chapter_number(_raw_number(item))
        if number is not None and number > 0:
            numbers.append(number)

    if not numbers:
        return 0.0

    numbers.sort(reverse=True)
    if len(numbers) <= SMALL_LIST_SIZE:
        return numbers[0]

    top = numbers[:SMALL_LIST_SIZE]
    diffs = [top[i] - top[i + 1] for i in range(len(top) - 1)]

    reasonable = [d for d in diffs if d <= REASONABLE_GAP]
    if len(reasonable) < 2:
        return top[0]

    average = sum(reasonable) / len(reasonable)
    threshold = max(MIN_REASONABLE_DIFF, average * GAP_MULTIPLIER)

    # First chapter (descending) whose step down to the next one is plausible
    for i, diff in enumerate(diffs):
        if diff <= threshold:
            return top[i]

    return top[-1]
