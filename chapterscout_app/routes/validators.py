"""Lightweight request validation helpers."""

from typing import Any, Dict, List, Optional, Tuple


Rule = Tuple[str, type, Optional[int]]

MAX_TITLE_LENGTH = 300
MAX_URL_LENGTH = 2000
MAX_LIMIT = 100
MAX_SOURCES = 10


def validate_fields(payload: Dict[str, Any], rules: List[Rule]) -> Optional[str]:
    """
    Validate required fields with optional max length.

    Args:
        payload: Incoming JSON dict.
        rules: List of (field, type, max_length or None).

    Returns:
        None if valid, or error message string.
    """
    for field, expected_type, max_len in rules:
        if field not in payload:
            return f"Missing required field: {field}"
        value = payload.get(field)
        if not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool):
            return f"Field '{field}' must be {expected_type.__name__}"
        if max_len is not None and len(str(value)) > max_len:
            return f"Field '{field}' exceeds max length {max_len}"
    return None


def validate_optional_url(payload: Dict[str, Any], field: str = 'url') -> Optional[str]:
    value = payload.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        return f"Field '{field}' must be str"
    if len(value) > MAX_URL_LENGTH:
        return f"Field '{field}' exceeds max length {MAX_URL_LENGTH}"
    return None


def clamp_int(value: Any, default: int, maximum: int) -> Tuple[int, Optional[str]]:
    """Parse a positive int, capped at maximum. Returns (value, error_or_none)."""
    if value is None:
        return default, None
    try:
        parsed = int(value)
    except (ValueError, TypeError):
        return default, f"Invalid integer: {value}"
    if parsed < 1:
        return default, None
    return min(parsed, maximum), None


def sanitize_string(value: str, max_length: int = 500) -> str:
    """Strip control characters and limit length."""
    if not isinstance(value, str):
        return ""
    return ''.join(c for c in value if c >= ' ')[:max_length].strip()
