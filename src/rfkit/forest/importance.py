"""Permutation feature importance over a held-out feature matrix."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeAlias

import numpy as np
from loguru import logger
from sklearn.metrics import accuracy_score

from rfkit.forest.models import FeatureImportance

PredictFn: TypeAlias = Callable[[np.ndarray], np.ndarray]

_PERCENT: float = 100.0


def permutation_importance(
    predict_fn: PredictFn,
    feature_matrix: np.ndarray,
    labels: np.ndarray,
    feature_names: Sequence[str],
    *,
    n_repeats: int = 1,
    rng: np.random.Generator | None = None,
) -> tuple[FeatureImportance, ...]:
    """Measure how much held-out accuracy drops when each feature is scrambled.

    For feature `i`, every row's value in column `i` is replaced by the value
    of a uniformly drawn row (with replacement, possibly itself). The
    importance is `max(0, baseline_accuracy - permuted_accuracy)`, averaged
    over `n_repeats` trials, then all importances are scaled to sum to 100.
    If no feature lowers accuracy, every importance is 0.

    Args:
        predict_fn (PredictFn): Maps a 2-D feature matrix to predicted class ids.
        feature_matrix (np.ndarray): Held-out encoded features, shape `(n, n_features)`.
        labels (np.ndarray): Held-out true class ids, shape `(n,)`.
        feature_names (Sequence[str]): Names parallel to the matrix columns.
        n_repeats (int): Permutation trials averaged per feature.
        rng (np.random.Generator | None): Random source; `None` uses a fresh,
            unseeded generator.

    Returns:
        tuple[FeatureImportance, ...]: One entry per feature, in column order.

    Raises:
        ValueError: If `feature_names` does not match the number of columns or
            `n_repeats` is less than 1.
    """
    if len(feature_names) != feature_matrix.shape[1]:
        raise ValueError(
            f"Expected {feature_matrix.shape[1]} feature names, got {len(feature_names)}",
        )
    if n_repeats < 1:
        raise ValueError(f"n_repeats must be at least 1, got {n_repeats}")

    n_rows = feature_matrix.shape[0]
    if n_rows == 0:
        return tuple(FeatureImportance(feature=name, importance=0.0) for name in feature_names)

    generator = rng if rng is not None else np.random.default_rng()
    baseline = float(accuracy_score(labels, predict_fn(feature_matrix)))

    raw_drops = np.zeros(len(feature_names), dtype=np.float64)
    for column in range(len(feature_names)):
        drops = []
        for _ in range(n_repeats):
            permuted = feature_matrix.copy()
            donor_rows = generator.integers(0, n_rows, size=n_rows)
            permuted[:, column] = feature_matrix[donor_rows, column]
            permuted_accuracy = float(accuracy_score(labels, predict_fn(permuted)))
            drops.append(max(0.0, baseline - permuted_accuracy))
        raw_drops[column] = float(np.mean(drops))

    total = float(raw_drops.sum())
    logger.debug("Permutation importance", baseline_accuracy=baseline, total_drop=total)
    shares = np.clip(raw_drops / total * _PERCENT, 0.0, _PERCENT) if total > 0 else np.zeros_like(raw_drops)
    return tuple(
        FeatureImportance(feature=name, importance=float(share))
        for name, share in zip(feature_names, shares, strict=True)
    )
