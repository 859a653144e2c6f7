"""Tests for evaluation metrics, the ROC curve, and AUC."""

from __future__ import annotations

import numpy as np
import pytest
from pytest_check import check

from rfkit.forest.evaluation import area_under_curve, compute_roc_curve, confusion_counts, evaluate
from rfkit.forest.models import ConfusionMatrix, RocPoint


class TestEvaluate:
    """Tests for `evaluate`."""

    def test_perfect_predictions(self) -> None:
        """Identical predictions and labels should score 100 everywhere."""
        # Arrange
        y_true = np.array([1, 0, 1, 1, 0, 0])

        # Act
        metrics = evaluate(y_true, y_true.copy(), train_size=24)

        # Assert
        with check:
            assert metrics.accuracy == pytest.approx(100.0)
        with check:
            assert metrics.precision == pytest.approx(100.0)
        with check:
            assert metrics.recall == pytest.approx(100.0)
        with check:
            assert metrics.f1_score == pytest.approx(100.0)
        with check:
            assert metrics.confusion_matrix == ConfusionMatrix(tp=3, tn=3, fp=0, fn=0)
        with check:
            assert (metrics.train_size, metrics.test_size) == (24, 6)

    def test_all_wrong_predictions(self) -> None:
        """Inverted binary predictions should score 0 accuracy, precision and recall."""
        # Arrange
        y_true = np.array([1, 0, 1, 0])

        # Act
        metrics = evaluate(y_true, 1 - y_true)

        # Assert
        with check:
            assert metrics.accuracy == 0.0
        with check:
            assert metrics.precision == 0.0
        with check:
            assert metrics.recall == 0.0
        with check:
            assert metrics.f1_score == 0.0
        with check:
            assert metrics.confusion_matrix == ConfusionMatrix(tp=0, tn=0, fp=2, fn=2)

    def test_mixed_predictions(self) -> None:
        """Precision, recall and F1 should follow their definitions, in percent."""
        # Arrange
        y_true = np.array([1, 1, 1, 0, 0])
        y_pred = np.array([1, 1, 0, 1, 0])

        # Act
        metrics = evaluate(y_true, y_pred)

        # Assert
        with check:
            assert metrics.accuracy == pytest.approx(60.0)
        with check:
            assert metrics.precision == pytest.approx(200.0 / 3)
        with check:
            assert metrics.recall == pytest.approx(200.0 / 3)
        with check:
            assert metrics.f1_score == pytest.approx(200.0 / 3)

    def test_multiclass_ids_count_as_negative(self) -> None:
        """Class ids other than 1 should count as negative in the confusion counts."""
        # Act
        metrics = evaluate(np.array([2, 1, 0]), np.array([2, 1, 2]))

        # Assert
        with check:
            assert metrics.confusion_matrix == ConfusionMatrix(tp=1, tn=2, fp=0, fn=0)
        with check:
            assert metrics.accuracy == pytest.approx(200.0 / 3)

    def test_empty_input(self) -> None:
        """An empty test set should produce zeros rather than fail."""
        # Act
        metrics = evaluate(np.array([], dtype=np.int64), np.array([], dtype=np.int64))

        # Assert
        with check:
            assert metrics.accuracy == 0.0
        with check:
            assert metrics.test_size == 0

    def test_mismatched_lengths_raise(self) -> None:
        """Predictions and labels of different lengths should be rejected."""
        with pytest.raises(ValueError, match="same shape"):
            evaluate(np.array([0, 1]), np.array([0]))

    def test_perfect_scores_give_unit_auc(self) -> None:
        """Scores that separate the classes perfectly should give AUC 1."""
        # Arrange
        y_true = np.array([0, 0, 1, 1])
        scores = np.array([0.1, 0.3, 0.7, 0.9])

        # Act
        metrics = evaluate(y_true, (scores >= 0.5).astype(np.int64), scores=scores)

        # Assert
        with check:
            assert metrics.auc == pytest.approx(1.0)
        with check:
            assert 0.0 <= metrics.auc <= 1.0


class TestConfusionCounts:
    """Tests for `confusion_counts`."""

    def test_counts_sum_to_length(self) -> None:
        """The four counts should add up to the number of rows."""
        # Arrange
        rng = np.random.default_rng(5)
        y_true = rng.integers(0, 2, 50)
        y_pred = rng.integers(0, 2, 50)

        # Act
        counts = confusion_counts(y_true, y_pred)

        # Assert
        with check:
            assert counts.tp + counts.tn + counts.fp + counts.fn == 50


class TestRocCurve:
    """Tests for `compute_roc_curve` and `area_under_curve`."""

    def test_curve_sorted_and_sized(self) -> None:
        """The curve should have one point per threshold, sorted by false positive rate."""
        # Arrange
        rng = np.random.default_rng(2)
        y_true = rng.integers(0, 2, 40)
        scores = rng.uniform(0, 1, 40)

        # Act
        points = compute_roc_curve(y_true, (scores >= 0.5).astype(np.int64), scores=scores)

        # Assert
        fprs = [point.fpr for point in points]
        with check:
            assert len(points) == 21
        with check:
            assert fprs == sorted(fprs)
        with check:
            assert points[-1] == RocPoint(fpr=1.0, tpr=1.0)

    def test_without_scores_curve_is_degenerate(self) -> None:
        """Without scores, every threshold reuses the hard predictions."""
        # Arrange
        y_true = np.array([1, 0, 1, 0])
        y_pred = np.array([1, 0, 0, 0])

        # Act
        points = compute_roc_curve(y_true, y_pred, threshold_steps=5)

        # Assert
        with check:
            assert set(points) == {RocPoint(fpr=0.0, tpr=0.5)}
        with check:
            assert area_under_curve(points) == 0.0

    def test_single_point_has_zero_area(self) -> None:
        """Fewer than two points enclose no area."""
        with check:
            assert area_under_curve((RocPoint(fpr=0.0, tpr=1.0),)) == 0.0
