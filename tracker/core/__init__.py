from .similarity import (
    SimilarityScore,
    calculate_similarity,
    date_similarity,
    location_similarity,
    normalize,
    string_similarity,
)
from .duplicates import (
    DUPLICATE_THRESHOLD,
    ScoredJob,
    dismiss_duplicate,
    find_potential_duplicates,
    get_pending_duplicates,
)
from .merge import MergeResult, merge_duplicates

__all__ = [
    "SimilarityScore",
    "calculate_similarity",
    "date_similarity",
    "location_similarity",
    "normalize",
    "string_similarity",
    "DUPLICATE_THRESHOLD",
    "ScoredJob",
    "dismiss_duplicate",
    "find_potential_duplicates",
    "get_pending_duplicates",
    "MergeResult",
    "merge_duplicates",
]
