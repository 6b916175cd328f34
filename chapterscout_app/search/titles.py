"""
Title preparation for cross-source searches.

A work known under many names (Korean, Japanese, romanized, English
licensed...) is searched with the few names most likely to hit on
English-language reading sites.
"""

import re
from typing import List, Sequence

from sources.text_utils import extract_alternate_titles

MAX_SEARCH_TITLES = 5

LATIN_ONLY_BONUS = 100
SHORT_TITLE_BONUS = 50       # <= SHORT_TITLE_LENGTH chars
MEDIUM_TITLE_BONUS = 25      # <= MEDIUM_TITLE_LENGTH chars
PLAIN_CHARS_BONUS = 30
FILLER_WORD_BONUS = 20

SHORT_TITLE_LENGTH = 30
MEDIUM_TITLE_LENGTH = 50

FILLER_WORDS = ("the", "of", "and", "return", "revenge", "blood", "sword", "iron")
STOP_WORDS = {"the", "and", "of", "in", "to", "for", "with", "on", "at", "by", "from"}

_LATIN_ONLY = re.compile(r"^[a-zA-Z0-9\s\-:.'!?]+$")
_SPECIAL_CHAR = re.compile(r"[^A-Za-z0-9_\s\-:.'!?]")


def _title_score(title: str) -> int:
    score = 0
    if _LATIN_ONLY.match(title):
        score += LATIN_ONLY_BONUS

    if len(title) <= SHORT_TITLE_LENGTH:
        score += SHORT_TITLE_BONUS
    elif len(title) <= MEDIUM_TITLE_LENGTH:
        score += MEDIUM_TITLE_BONUS

    if not _SPECIAL_CHAR.search(title):
        score += PLAIN_CHARS_BONUS

    lowered = title.lower()
    if any(word in lowered for word in FILLER_WORDS):
        score += FILLER_WORD_BONUS

    return score


def select_best_titles(titles: Sequence[str], max_titles: int = MAX_SEARCH_TITLES) -> List[str]:
    """
    Pick the titles most likely to produce search hits.

    Latin-only, short, plain titles rank first. The sort is stable, so
    equally scored titles keep their input order.
    """
    ranked = sorted(titles, key=_title_score, reverse=True)
    return list(ranked[:max_titles])


def generate_search_terms(title: str) -> List[str]:
    """
    Search variations for one title: the title itself, a cleaned variant
    and short keyword combinations.
    """
    terms = [title]

    clean = re.sub(r"\s*\(.*?\)\s*", "", title)
    clean = re.sub(r"\s*\[.*?\]\s*", "", clean)
    clean = re.sub(r"\s*-\s*.*$", "", clean)
    clean = re.sub(r"\s*:\s*.*$", "", clean).strip()
    if clean != title and len(clean) > 3:
        terms.append(clean)

    keywords = [w for w in title.split() if len(w) > 3 and w.lower() not in STOP_WORDS]
    if len(keywords) >= 2:
        terms.append(" ".join(keywords[:2]))
        if len(keywords) >= 3:
            terms.append(" ".join(keywords[:3]))

    # dedupe, keep order
    return list(dict.fromkeys(terms))


__all__ = [
    "MAX_SEARCH_TITLES", "select_best_titles", "generate_search_terms",
    "extract_alternate_titles",
]
