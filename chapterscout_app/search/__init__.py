"""Cross-source search: title scoring, resolution and result grouping."""

from .similarity import title_similarity, best_similarity
from .titles import select_best_titles, generate_search_terms, extract_alternate_titles
from .resolver import CrossSourceResolver
from .deduplicator import SearchDeduplicator, UnifiedSearchResult, SourceOption, search_manga

__all__ = [
    'title_similarity', 'best_similarity',
    'select_best_titles', 'generate_search_terms', 'extract_alternate_titles',
    'CrossSourceResolver',
    'SearchDeduplicator', 'UnifiedSearchResult', 'SourceOption', 'search_manga',
]
