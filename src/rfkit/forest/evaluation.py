"""Evaluation metrics: accuracy, precision, recall, F1, confusion counts, ROC curve, and AUC."""

from __future__ import annotations

import numpy as np
from sklearn.metrics import accuracy_score, auc

from rfkit.forest.models import ConfusionMatrix, EvaluationMetrics, RocPoint

_POSITIVE_CLASS: int = 1
_PERCENT: float = 100.0
_DEFAULT_THRESHOLD_STEPS: int = 21


# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def evaluate(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    *,
    scores: np.ndarray | None = None,
    train_size: int = 0,
    threshold_steps: int = _DEFAULT_THRESHOLD_STEPS,
) -> EvaluationMetrics:
    """Compute held-out metrics from predicted and true class ids.

    Class id 1 is the positive class; any other id counts as negative for the
    confusion counts. Precision and recall are 0 when there are no true
    positives, and F1 is 0 when precision and recall are both 0. Accuracy,
    precision, recall and F1 are reported in percent, AUC in the unit interval.

    Args:
        y_true (np.ndarray): True class ids.
        y_pred (np.ndarray): Predicted class ids, parallel to `y_true`.
        scores (np.ndarray | None): Optional per-row score for the positive
            class, used to build the ROC curve; see :func:`compute_roc_curve`.
        train_size (int): Number of rows the model was trained on.
        threshold_steps (int): Number of ROC thresholds.

    Returns:
        EvaluationMetrics: The computed metrics.

    Raises:
        ValueError: If `y_true` and `y_pred` have different lengths.
    """
    y_true = np.asarray(y_true, dtype=np.int64)
    y_pred = np.asarray(y_pred, dtype=np.int64)
    if y_true.shape != y_pred.shape:
        raise ValueError(f"y_true and y_pred must have the same shape, got {y_true.shape} and {y_pred.shape}")

    confusion = confusion_counts(y_true, y_pred)
    accuracy = float(accuracy_score(y_true, y_pred)) if y_true.size else 0.0
    precision = confusion.tp / (confusion.tp + confusion.fp) if confusion.tp > 0 else 0.0
    recall = confusion.tp / (confusion.tp + confusion.fn) if confusion.tp > 0 else 0.0
    f1_score = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0

    roc_curve = compute_roc_curve(y_true, y_pred, scores=scores, threshold_steps=threshold_steps)
    return EvaluationMetrics(
        accuracy=accuracy * _PERCENT,
        precision=precision * _PERCENT,
        recall=recall * _PERCENT,
        f1_score=f1_score * _PERCENT,
        train_size=train_size,
        test_size=int(y_true.size),
        confusion_matrix=confusion,
        roc_curve=roc_curve,
        auc=area_under_curve(roc_curve),
    )


def confusion_counts(y_true: np.ndarray, y_pred: np.ndarray) -> ConfusionMatrix:
    """Count true/false positives and negatives with class id 1 as the positive class.

    Examples:
        >>> confusion_counts(np.array([1, 0, 1, 0]), np.array([1, 1, 0, 0]))
        ConfusionMatrix(tp=1, tn=1, fp=1, fn=1)
    """
    actual_positive = np.asarray(y_true) == _POSITIVE_CLASS
    predicted_positive = np.asarray(y_pred) == _POSITIVE_CLASS
    return ConfusionMatrix(
        tp=int(np.sum(predicted_positive & actual_positive)),
        tn=int(np.sum(~predicted_positive & ~actual_positive)),
        fp=int(np.sum(predicted_positive & ~actual_positive)),
        fn=int(np.sum(~predicted_positive & actual_positive)),
    )


def compute_roc_curve(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    *,
    scores: np.ndarray | None = None,
    threshold_steps: int = _DEFAULT_THRESHOLD_STEPS,
) -> tuple[RocPoint, ...]:
    """Build ROC points over evenly spaced thresholds in [0, 1].

    With `scores`, a row is predicted positive at threshold `t` when its score
    is at least `t`. Without `scores`, every threshold reuses the hard
    predictions `y_pred`, so all points coincide and the curve is degenerate.

    Args:
        y_true (np.ndarray): True class ids.
        y_pred (np.ndarray): Predicted class ids.
        scores (np.ndarray | None): Per-row positive-class score in [0, 1].
        threshold_steps (int): Number of thresholds, including both 0 and 1.

    Returns:
        tuple[RocPoint, ...]: Points sorted by false positive rate, then true
            positive rate.
    """
    points: list[RocPoint] = []
    for threshold in np.linspace(0.0, 1.0, threshold_steps):
        predictions = y_pred if scores is None else (np.asarray(scores) >= threshold).astype(np.int64)
        counts = confusion_counts(y_true, predictions)
        positives = counts.tp + counts.fn
        negatives = counts.fp + counts.tn
        points.append(
            RocPoint(
                fpr=counts.fp / negatives if negatives > 0 else 0.0,
                tpr=counts.tp / positives if positives > 0 else 0.0,
            )
        )
    points.sort(key=lambda point: (point.fpr, point.tpr))
    return tuple(points)


def area_under_curve(points: tuple[RocPoint, ...]) -> float:
    """Trapezoidal area under ROC points already sorted by false positive rate."""
    if len(points) < 2:
        return 0.0
    fpr = np.asarray([point.fpr for point in points], dtype=np.float64)
    tpr = np.asarray([point.tpr for point in points], dtype=np.float64)
    return float(np.clip(auc(fpr, tpr), 0.0, 1.0))
