"""
================================================================================
ChapterScout - Chapter-Count Consensus
================================================================================
Estimates a work's true chapter count from several reading sources.

Sources disagree: one lists a bonus chapter, another is a release behind,
a third mis-scraped its list entirely. The engine samples the chapter list
length on the top-ranked sources and votes:

  1. Mode of the counts; confidence = share of sources agreeing
  2. Low confidence (< 60%) with 3+ samples: look for a cluster around the
     median (tolerance max(5, 10% of median)). A cluster covering 60%+ of
     the samples wins with its own median.

Failures degrade to {count: 0, confidence: 0}; confidence 0 means
"unknown", not "zero chapters".
================================================================================
"""

import logging
from collections import Counter
from typing import List, Optional, Sequence, Tuple

from sources import ProviderRegistry

from ..models import ChapterValidation, ConsensusResult, SourceCount
from ..search.resolver import CrossSourceResolver

logger = logging.getLogger(__name__)

DEFAULT_MAX_SOURCES = 5
QUICK_MAX_SOURCES = 3
VALIDATION_MAX_SOURCES = 4

LOW_CONFIDENCE = 60
CLUSTER_MIN_SAMPLES = 3
CLUSTER_COVERAGE = 60         # percent of samples
CLUSTER_TOLERANCE = 0.10      # of the median
MIN_TOLERANCE = 5

VALIDATION_MIN_CONFIDENCE = 50
VALIDATION_TOLERANCE = 0.15   # of the consensus count


def _percent(part: int, whole: int) -> int:
    """part/whole as a whole percentage, halves rounded up."""
    return (part * 200 + whole) // (2 * whole)


def calculate_consensus(counts: Sequence[int]) -> Tuple[int, int]:
    """
    Vote on a list of chapter counts.

    Returns (count, confidence). Ties in the mode go to the smallest count.
    """
    if not counts:
        return 0, 0
    if len(counts) == 1:
        return counts[0], 100

    total = len(counts)
    frequency = Counter(counts)
    best_count = min(frequency)
    best_freq = 0
    for count in sorted(frequency):
        if frequency[count] > best_freq:
            best_count, best_freq = count, frequency[count]

    confidence = _percent(best_freq, total)

    if confidence < LOW_CONFIDENCE and total >= CLUSTER_MIN_SAMPLES:
        ordered = sorted(counts)
        median = ordered[total // 2]
        tolerance = max(MIN_TOLERANCE, int(median * CLUSTER_TOLERANCE))
        cluster = [c for c in ordered if abs(c - median) <= tolerance]

        if len(cluster) * 100 >= total * CLUSTER_COVERAGE:
            return cluster[len(cluster) // 2], _percent(len(cluster), total)

    return best_count, confidence


class ChapterConsensus:
    """
    Chapter-count consensus across reading sources.

    Usage:
        engine = ChapterConsensus(get_provider_registry())
        result = await engine.consensus("Solo Leveling")
        result.count, result.confidence
    """

    def __init__(self, registry: ProviderRegistry, resolver: Optional[CrossSourceResolver] = None):
        self.registry = registry
        self.resolver = resolver or CrossSourceResolver(registry)

    @staticmethod
    def calculate_consensus(counts: Sequence[int]) -> Tuple[int, int]:
        return calculate_consensus(counts)

    async def consensus(
        self,
        title: str,
        url: Optional[str] = None,
        max_sources: int = DEFAULT_MAX_SOURCES
    ) -> ConsensusResult:
        """
        Sample chapter counts from the top max_sources candidates and vote.

        A source that fails or lists no chapters is left out of the vote.
        """
        logger.info(f"Getting chapter count consensus for: {title}")
        try:
            candidates = await self.resolver.resolve(title, url)
            if not candidates:
                logger.info(f"No sources found for '{title}'")
                return ConsensusResult()

            sources: List[SourceCount] = []
            for candidate in candidates[:max_sources]:
                try:
                    chapters = await self.registry.dispatch(
                        candidate.provider_name, "get_chapters", candidate.url
                    )
                except Exception as e:
                    logger.warning(f"Failed to get chapters from {candidate.provider_name}: {e}")
                    continue

                if chapters:
                    sources.append(SourceCount(candidate.provider_name, candidate.url, len(chapters)))
                    logger.info(f"{candidate.provider_name}: {len(chapters)} chapters")

            if not sources:
                logger.info(f"No valid chapter counts found for '{title}'")
                return ConsensusResult()

            counts = [s.count for s in sources]
            count, confidence = calculate_consensus(counts)
            logger.info(f"Chapter count consensus for '{title}': {count} (confidence: {confidence}%)")
            return ConsensusResult(count=count, confidence=confidence, sources=sources, all_counts=counts)

        except Exception as e:
            logger.error(f"Error getting chapter count consensus for '{title}': {e}")
            return ConsensusResult()

    async def quick_consensus_count(self, title: str, url: Optional[str] = None) -> int:
        """Consensus count from the top 3 sources only."""
        result = await self.consensus(title, url, QUICK_MAX_SOURCES)
        return result.count

    async def validate_chapter_count(
        self,
        reported_count: int,
        title: str,
        url: Optional[str] = None
    ) -> ChapterValidation:
        """
        Check a reported chapter count against the consensus.

        Without a confident consensus (< 50%) the reported count is accepted
        as-is with confidence 0.
        """
        result = await self.consensus(title, url, VALIDATION_MAX_SOURCES)

        if result.confidence < VALIDATION_MIN_CONFIDENCE:
            return ChapterValidation(is_reasonable=True, suggested_count=reported_count, confidence=0)

        tolerance = max(MIN_TOLERANCE, int(result.count * VALIDATION_TOLERANCE))
        return ChapterValidation(
            is_reasonable=abs(reported_count - result.count) <= tolerance,
            suggested_count=result.count,
            confidence=result.confidence,
        )
