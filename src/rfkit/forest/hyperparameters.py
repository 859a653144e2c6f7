"""Hyperparameter policy: dataset size and feature count to forest configuration."""

from __future__ import annotations

from rfkit.forest.models import HyperparameterSet

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

# (exclusive upper row bound, trees, max depth, min samples per split), ascending.
_SIZE_TIERS: tuple[tuple[int | None, int, int, int], ...] = (
    (100, 50, 5, 3),
    (500, 100, 8, 2),
    (1000, 150, 12, 2),
    (None, 200, 15, 3),
)
_WIDE_FEATURE_COUNT: int = 10  # More features than this deepens and enlarges the forest.
_WIDE_DEPTH_BONUS: int = 3
_WIDE_TREE_BONUS: int = 50
_MAX_DEPTH_CAP: int = 20
_MAX_TREES_CAP: int = 250


# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def select_hyperparameters(n_rows: int, n_features: int) -> HyperparameterSet:
    """Choose the forest configuration for a training run.

    | rows     | trees | max depth | min samples |
    |----------|-------|-----------|-------------|
    | < 100    | 50    | 5         | 3           |
    | 100-499  | 100   | 8         | 2           |
    | 500-999  | 150   | 12        | 2           |
    | >= 1000  | 200   | 15        | 3           |

    With more than 10 features, depth grows by 3 (capped at 20) and the tree
    count by 50 (capped at 250).

    Args:
        n_rows (int): Number of rows in the training dataset.
        n_features (int): Number of selected features.

    Returns:
        HyperparameterSet: The chosen configuration.

    Examples:
        >>> select_hyperparameters(n_rows=250, n_features=4)
        HyperparameterSet(n_estimators=100, max_depth=8, min_samples_split=2)
        >>> select_hyperparameters(n_rows=2000, n_features=12)
        HyperparameterSet(n_estimators=250, max_depth=18, min_samples_split=3)
    """
    for upper_bound, n_estimators, max_depth, min_samples_split in _SIZE_TIERS:
        if upper_bound is None or n_rows < upper_bound:
            break

    if n_features > _WIDE_FEATURE_COUNT:
        max_depth = min(max_depth + _WIDE_DEPTH_BONUS, _MAX_DEPTH_CAP)
        n_estimators = min(n_estimators + _WIDE_TREE_BONUS, _MAX_TREES_CAP)

    return HyperparameterSet(
        n_estimators=n_estimators,
        max_depth=max_depth,
        min_samples_split=min_samples_split,
    )
