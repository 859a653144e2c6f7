"""Tests for permutation feature importance."""

from __future__ import annotations

import numpy as np
import pytest
from pytest_check import check

from rfkit.forest.importance import permutation_importance


class TestPermutationImportance:
    """Tests for `permutation_importance`."""

    def test_zero_signal_feature_gets_no_importance(self) -> None:
        """A feature the predictor ignores should receive 0 while the used feature gets 100."""
        # Arrange
        feature_matrix, labels = _make_threshold_data()

        # Act
        shares = []
        for seed in range(20):
            importance = permutation_importance(
                _predict_from_first_column,
                feature_matrix,
                labels,
                ["signal", "noise"],
                rng=np.random.default_rng(seed),
            )
            shares.append([item.importance for item in importance])
        mean_shares = np.mean(shares, axis=0)

        # Assert
        with check:
            assert mean_shares[1] == pytest.approx(0.0)
        with check:
            assert mean_shares[0] == pytest.approx(100.0)

    def test_importances_sum_to_100(self) -> None:
        """Whenever any feature matters, importances should sum to 100 and stay in range."""
        # Arrange
        feature_matrix, labels = _make_threshold_data()

        # Act
        importance = permutation_importance(
            lambda matrix: ((matrix[:, 0] > 0) & (matrix[:, 1] > -10)).astype(np.int64),
            feature_matrix,
            labels,
            ["signal", "noise"],
            n_repeats=3,
            rng=np.random.default_rng(4),
        )

        # Assert
        with check:
            assert sum(item.importance for item in importance) == pytest.approx(100.0)
        with check:
            assert all(0.0 <= item.importance <= 100.0 for item in importance)
        with check:
            assert [item.feature for item in importance] == ["signal", "noise"]

    def test_constant_predictor_gives_all_zero(self) -> None:
        """If no permutation lowers accuracy, every importance should be 0."""
        # Arrange
        feature_matrix, labels = _make_threshold_data()

        # Act
        importance = permutation_importance(
            lambda matrix: np.zeros(matrix.shape[0], dtype=np.int64),
            feature_matrix,
            labels,
            ["signal", "noise"],
            rng=np.random.default_rng(0),
        )

        # Assert
        with check:
            assert [item.importance for item in importance] == [0.0, 0.0]

    def test_empty_matrix_gives_all_zero(self) -> None:
        """An empty held-out set should yield zeros without calling the predictor."""
        # Act
        importance = permutation_importance(
            _predict_from_first_column,
            np.empty((0, 2)),
            np.empty(0, dtype=np.int64),
            ["a", "b"],
        )

        # Assert
        with check:
            assert [item.importance for item in importance] == [0.0, 0.0]

    def test_name_count_mismatch_raises(self) -> None:
        """Feature names must match the matrix width."""
        # Arrange
        feature_matrix, labels = _make_threshold_data()

        # Act & Assert
        with pytest.raises(ValueError, match="Expected 2 feature names"):
            permutation_importance(_predict_from_first_column, feature_matrix, labels, ["only_one"])

    def test_invalid_repeats_raise(self) -> None:
        """At least one permutation trial is required."""
        # Arrange
        feature_matrix, labels = _make_threshold_data()

        # Act & Assert
        with pytest.raises(ValueError, match="n_repeats"):
            permutation_importance(_predict_from_first_column, feature_matrix, labels, ["a", "b"], n_repeats=0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _predict_from_first_column(feature_matrix: np.ndarray) -> np.ndarray:
    return (feature_matrix[:, 0] > 0).astype(np.int64)


def _make_threshold_data(n_rows: int = 60) -> tuple[np.ndarray, np.ndarray]:
    """Build a matrix whose first column alone determines the label.

    Args:
        n_rows (int): Number of rows. Defaults to 60.

    Returns:
        tuple[np.ndarray, np.ndarray]: `(feature_matrix, labels)`; column 0 is
            the signal, column 1 is noise.
    """
    rng = np.random.default_rng(21)
    signal = np.concatenate([rng.uniform(-5, -1, n_rows // 2), rng.uniform(1, 5, n_rows - n_rows // 2)])
    noise = rng.normal(size=n_rows)
    labels = (signal > 0).astype(np.int64)
    return np.column_stack([signal, noise]), labels
