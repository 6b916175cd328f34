"""
Title similarity scoring.

Titles of the same work differ between sites by punctuation, translator
notes and romanization. title_similarity() approximates "same work?" with
a cheap containment + token-overlap heuristic:

    exact match (case/whitespace-insensitive)  -> 100
    one title contains the other               -> 90
    otherwise  token overlap % + length bonus, clamped to [0, 100]

The constants are tunable; changing them changes which candidates the
resolver keeps (>= 60) and when it stops searching (>= 85).
"""

from typing import Iterable, List

EXACT_MATCH_SCORE = 100.0
CONTAINMENT_SCORE = 90.0
MIN_TOKEN_LENGTH = 3
LENGTH_BONUS_WINDOW = 20


def _normalize(title: str) -> str:
    return (title or "").lower().strip()


def _tokens(text: str) -> List[str]:
    return [word for word in text.split() if len(word) >= MIN_TOKEN_LENGTH]


def title_similarity(title_a: str, title_b: str) -> float:
    """Score 0-100 for how likely title_a and title_b name the same work."""
    a = _normalize(title_a)
    b = _normalize(title_b)
    if not a or not b:
        return 0.0

    if a == b:
        return EXACT_MATCH_SCORE
    if a in b or b in a:
        return CONTAINMENT_SCORE

    tokens_a = _tokens(a)
    tokens_b = _tokens(b)
    if not tokens_a or not tokens_b:
        return 0.0

    # A token matches when either side contains the other
    matched = sum(
        1 for token in tokens_a
        if any(other in token or token in other for other in tokens_b)
    )
    overlap = matched / max(len(tokens_a), len(tokens_b)) * 100
    length_bonus = max(0, LENGTH_BONUS_WINDOW - abs(len(a) - len(b)))

    return float(min(100.0, max(0.0, overlap + length_bonus)))


def best_similarity(known_titles: Iterable[str], title: str) -> float:
    """Highest title_similarity of title against any known title."""
    return max((title_similarity(known, title) for known in known_titles), default=0.0)
