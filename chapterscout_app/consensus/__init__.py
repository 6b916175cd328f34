"""Chapter-count consensus and latest-chapter validation."""

from .engine import ChapterConsensus, calculate_consensus
from .latest import parse_chapter_number, validated_latest_chapter

__all__ = [
    'ChapterConsensus', 'calculate_consensus',
    'parse_chapter_number', 'validated_latest_chapter',
]
