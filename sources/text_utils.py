"""
Best-effort text mining for connectors.

extract_alternate_titles() pulls alternate names out of free-text
descriptions such as:

    "Alternative names: Ore dake Level Up na Ken • Solo Leveling"
    "Also known as: Title One, Title Two"

It is deliberately narrow so a connector can drop it without touching
anything else.
"""

import re
from typing import List

ALT_TITLE_PATTERNS = [
    re.compile(
        r"(?:Alternative\s+(?:names?|titles?)|Also\s+known\s+as|Other\s+names?)[:\s]+([^.]+)",
        re.IGNORECASE,
    ),
    re.compile(r"([^•]+)(?:\s*•\s*)"),
]

_SEPARATORS = re.compile(r"[•,;|]")
_LEADING_SEP = re.compile(r"^\s*[•\-,;|]\s*")
_TRAILING_SEP = re.compile(r"\s*[•\-,;|]\s*$")
_LATIN = re.compile(r"[a-zA-Z]")


def extract_alternate_titles(free_text: str) -> List[str]:
    """Return Latin-bearing alternate titles found in free_text, first-seen order."""
    titles: List[str] = []
    if not free_text:
        return titles

    for pattern in ALT_TITLE_PATTERNS:
        for match in pattern.finditer(free_text):
            chunk = match.group(1)
            if not chunk:
                continue
            for piece in _SEPARATORS.split(chunk):
                piece = piece.strip()
                if len(piece) <= 2 or not _LATIN.search(piece):
                    continue
                clean = _TRAILING_SEP.sub("", _LEADING_SEP.sub("", piece)).strip()
                if len(clean) > 2 and clean not in titles:
                    titles.append(clean)

    return titles
