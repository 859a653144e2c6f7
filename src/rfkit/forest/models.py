"""Pydantic models for the random forest pipeline: configuration, encodings, trees, metrics, and results."""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from functools import cached_property
from typing import Literal, TypeAlias

import numpy as np
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rfkit.dataset import ColumnKind, RawValue
from rfkit.exceptions import (
    ColumnsNotFoundError,
    DuplicateColumnsError,
    TransientComputationError,
    ValidationError,
)
from rfkit.identifier import VersionId

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

TargetKind: TypeAlias = Literal["categorical", "median_split"]

UNKNOWN_LABEL = "Unknown"

# ---------------------------------------------------------------------------
# Public models -- Configuration and encodings
# ---------------------------------------------------------------------------


class FeatureConfig(BaseModel):
    """Which columns feed the model and how each one is interpreted.

    Attributes:
        features (tuple[str, ...]): Ordered feature column names. The order fixes
            the column layout of every feature matrix built from this config.
        target (str): The column being predicted.
        feature_types (dict[str, ColumnKind]): Column name to `"numeric"` or
            `"categorical"`. Columns without an entry are treated as numeric.

    Examples:
        >>> config = FeatureConfig(
        ...     features=("age", "plan"),
        ...     target="churned",
        ...     feature_types={"age": "numeric", "plan": "categorical", "churned": "categorical"},
        ... )
        >>> config.kind_of("plan")
        'categorical'
    """

    model_config = ConfigDict(frozen=True)

    features: tuple[str, ...] = Field(description="Ordered feature column names.")
    target: str = Field(description="The column being predicted.")
    feature_types: dict[str, ColumnKind] = Field(
        default_factory=dict,
        description="Column name to 'numeric' or 'categorical'. Missing entries default to numeric.",
    )

    def kind_of(self, column: str) -> ColumnKind:
        """Return how `column` is interpreted.

        Args:
            column (str): Any column name, feature or target.

        Returns:
            ColumnKind: `"categorical"` if declared so, otherwise `"numeric"`.
        """
        return "categorical" if self.feature_types.get(column) == "categorical" else "numeric"

    def validate_against(self, columns: Sequence[str]) -> None:
        """Check this configuration against the columns of a dataset.

        Args:
            columns (Sequence[str]): Column names present in the dataset.

        Raises:
            ValidationError: If no features are selected or the target is also
                selected as a feature.
            DuplicateColumnsError: If a feature is listed more than once.
            ColumnsNotFoundError: If a feature or the target is not a dataset column.
        """
        if not self.features:
            raise ValidationError("Select at least one feature column")
        if not self.target:
            raise ValidationError("Select a target column")
        if self.target in self.features:
            raise ValidationError(f"Target column '{self.target}' cannot also be a feature")
        if len(set(self.features)) != len(self.features):
            raise DuplicateColumnsError(columns=list(self.features))
        missing = [col for col in (*self.features, self.target) if col not in columns]
        if missing:
            raise ColumnsNotFoundError(missing_columns=missing, available_columns=list(columns))


class NumericStats(BaseModel):
    """Z-score normalization statistics for one numeric feature.

    Attributes:
        mean (float): Population mean over the training data.
        std (float): Population standard deviation; a zero deviation is stored as 1.
    """

    model_config = ConfigDict(frozen=True)

    mean: float = Field(description="Population mean over the training data.")
    std: float = Field(gt=0.0, description="Population standard deviation, never zero.")

    def normalize(self, value: float) -> float:
        """Return the z-score of `value`."""
        return (value - self.mean) / self.std


class Encodings(BaseModel):
    """Feature encoding artifacts fixed at training time.

    Attributes:
        category_maps (dict[str, dict[str, int]]): Per categorical feature, the
            category value to index map in first-seen order.
        numeric_stats (dict[str, NumericStats]): Per numeric feature, the
            normalization statistics.
    """

    model_config = ConfigDict(frozen=True)

    category_maps: dict[str, dict[str, int]] = Field(
        default_factory=dict,
        description="Per categorical feature, category value to integer index in first-seen order.",
    )
    numeric_stats: dict[str, NumericStats] = Field(
        default_factory=dict,
        description="Per numeric feature, population mean and standard deviation.",
    )


class TargetEncoding(BaseModel):
    """Mapping between human-readable target labels and integer class ids.

    A categorical target assigns ids in first-seen order. A numeric target is
    split at its median into the two classes `"> {median}"` (1) and
    `"≤ {median}"` (0).

    Attributes:
        kind (TargetKind): `"categorical"` or `"median_split"`.
        classes (dict[str, int]): Label to class id.
        median (float | None): Split point for `"median_split"` targets.

    Examples:
        >>> encoding = TargetEncoding(kind="categorical", classes={"A": 0, "B": 1})
        >>> encoding.decode(1)
        'B'
        >>> encoding.decode(7)
        'Unknown'
    """

    model_config = ConfigDict(frozen=True)

    kind: TargetKind = Field(description="'categorical' or 'median_split'.")
    classes: dict[str, int] = Field(description="Label to class id.")
    median: float | None = Field(default=None, description="Split point for median-split targets.")

    @model_validator(mode="after")
    def _validate_classes(self) -> TargetEncoding:
        """Validate that there are at least two classes with distinct ids.

        Returns:
            TargetEncoding: The validated model instance.

        Raises:
            ValueError: If fewer than two classes are mapped, ids repeat, or a
                median-split encoding has no median.
        """
        if len(self.classes) < 2:
            raise ValueError(f"target encoding needs at least 2 classes, got {len(self.classes)}")
        if len(set(self.classes.values())) != len(self.classes):
            raise ValueError("target encoding class ids must be unique")
        if self.kind == "median_split" and self.median is None:
            raise ValueError("median-split target encoding requires a median")
        return self

    @property
    def n_classes(self) -> int:
        """int: Number of target classes."""
        return len(self.classes)

    def encode(self, label: str) -> int:
        """Return the class id for `label`.

        Raises:
            KeyError: If `label` is not one of the encoded classes.
        """
        return self.classes[label]

    def decode(self, class_id: int) -> str:
        """Return the label for `class_id`, or `"Unknown"` if it is not mapped."""
        for label, mapped_id in self.classes.items():
            if mapped_id == class_id:
                return label
        return UNKNOWN_LABEL


class HyperparameterSet(BaseModel):
    """Random forest configuration chosen by the hyperparameter policy.

    Attributes:
        n_estimators (int): Number of trees.
        max_depth (int): Maximum depth of each tree.
        min_samples_split (int): Minimum samples a node needs before it may split.
    """

    model_config = ConfigDict(frozen=True)

    n_estimators: int = Field(ge=1, description="Number of trees.")
    max_depth: int = Field(ge=1, description="Maximum depth of each tree.")
    min_samples_split: int = Field(ge=2, description="Minimum samples a node needs before it may split.")


# ---------------------------------------------------------------------------
# Public models -- Tree structure
# ---------------------------------------------------------------------------


class LeafNode(BaseModel):
    """A terminal tree node that predicts one class id."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: int = Field(ge=0, description="Class id predicted at this leaf.")

    def predict(self, sample: Sequence[float]) -> int:  # noqa: ARG002 - uniform node interface
        """Return this leaf's class id."""
        return self.category


class SplitNode(BaseModel):
    """An internal tree node: samples with `sample[column] < value` go left, all others go right."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    column: int = Field(ge=0, description="Feature index tested at this node.")
    value: float = Field(description="Threshold; values strictly below it go to the left branch.")
    left: LeafNode | SplitNode = Field(description="Subtree for samples below the threshold.")
    right: LeafNode | SplitNode = Field(description="Subtree for samples at or above the threshold.")

    def predict(self, sample: Sequence[float]) -> int:
        """Descend into the branch selected by `sample` and return the reached leaf's class id."""
        branch = self.left if sample[self.column] < self.value else self.right
        return branch.predict(sample)


TreeNode: TypeAlias = LeafNode | SplitNode


@dataclass(frozen=True, eq=False)
class _FlatTree:
    """Array form of a tree for vectorized prediction; `feature == -1` marks a leaf.

    Compared by identity, so a cached copy never enters model equality.
    """

    feature: np.ndarray
    threshold: np.ndarray
    left: np.ndarray
    right: np.ndarray
    category: np.ndarray


class DecisionTree(BaseModel):
    """One fitted tree of the ensemble.

    Attributes:
        root (TreeNode): Root node of the tree.
        gain (float): Impurity decrease achieved by the root split (0 for a
            single-leaf tree).
    """

    model_config = ConfigDict(frozen=True)

    root: LeafNode | SplitNode = Field(description="Root node of the tree.")
    gain: float = Field(default=0.0, description="Impurity decrease achieved by the root split.")

    def predict(self, sample: Sequence[float]) -> int:
        """Walk the tree for one sample.

        Args:
            sample (Sequence[float]): Encoded feature vector.

        Returns:
            int: Predicted class id.

        Raises:
            TransientComputationError: If the sample cannot be routed through
                the tree (e.g. it is shorter than a tested column index).
        """
        try:
            return self.root.predict(sample)
        except (IndexError, TypeError) as exc:
            raise TransientComputationError(f"Tree could not vote on sample: {exc}") from exc

    def predict_matrix(self, feature_matrix: np.ndarray) -> np.ndarray:
        """Walk the tree for every row of `feature_matrix` at once.

        Routing is identical to :meth:`predict`.

        Args:
            feature_matrix (np.ndarray): 2-D encoded feature matrix.

        Returns:
            np.ndarray: 1-D int64 array of predicted class ids.

        Raises:
            TransientComputationError: If a tested column index is outside the matrix.
        """
        flat = self.flattened
        node_ids = np.zeros(feature_matrix.shape[0], dtype=np.intp)
        try:
            while True:
                node_features = flat.feature[node_ids]
                active_rows = np.flatnonzero(node_features >= 0)
                if active_rows.size == 0:
                    break
                active_nodes = node_ids[active_rows]
                go_left = feature_matrix[active_rows, node_features[active_rows]] < flat.threshold[active_nodes]
                node_ids[active_rows] = np.where(go_left, flat.left[active_nodes], flat.right[active_nodes])
        except IndexError as exc:
            raise TransientComputationError(f"Tree could not vote on matrix: {exc}") from exc
        return flat.category[node_ids]

    @property
    def depth(self) -> int:
        """int: Number of split levels on the longest root-to-leaf path."""
        return _node_depth(self.root)

    @cached_property
    def flattened(self) -> _FlatTree:
        """_FlatTree: Array form of the tree, built once per tree."""
        return _flatten_tree(self.root)


class Forest(BaseModel):
    """The fitted ensemble: a fixed tuple of trees combined by majority vote.

    Attributes:
        trees (tuple[DecisionTree, ...]): Constituent trees.
        seed (int): Seed used for the bootstrap samples the trees were grown on.
    """

    model_config = ConfigDict(frozen=True)

    trees: tuple[DecisionTree, ...] = Field(min_length=1, description="Constituent trees.")
    seed: int = Field(description="Seed used for bootstrap sampling while fitting.")

    def votes(self, sample: Sequence[float]) -> Counter[int]:
        """Let every tree vote on one sample.

        Trees that cannot route the sample are skipped.

        Args:
            sample (Sequence[float]): Encoded feature vector.

        Returns:
            Counter[int]: Vote count per class id.
        """
        tally: Counter[int] = Counter()
        for tree_index, tree in enumerate(self.trees):
            try:
                tally[tree.predict(sample)] += 1
            except TransientComputationError as exc:
                logger.debug("Tree skipped during voting", tree_index=tree_index, reason=str(exc))
        return tally

    def predict(self, sample: Sequence[float]) -> int:
        """Return the majority-vote class id for one sample; ties go to the lowest id.

        Raises:
            TransientComputationError: If no tree could vote.
        """
        tally = self.votes(sample)
        if not tally:
            raise TransientComputationError("No tree in the forest could vote on the sample")
        return self.winner(tally)

    @staticmethod
    def winner(tally: Counter[int]) -> int:
        """Return the class id with the most votes in a non-empty tally; ties go to the lowest id."""
        return min(tally, key=lambda class_id: (-tally[class_id], class_id))

    def vote_counts(self, feature_matrix: np.ndarray) -> np.ndarray:
        """Tally per-class votes for every row of `feature_matrix`.

        Args:
            feature_matrix (np.ndarray): 2-D encoded feature matrix.

        Returns:
            np.ndarray: Array of shape `(n_classes, n_samples)` holding vote
                counts, where `n_classes` is one more than the largest class id
                any leaf predicts.
        """
        n_samples = feature_matrix.shape[0]
        counts = np.zeros((self.n_classes, n_samples), dtype=np.int64)
        sample_index = np.arange(n_samples)
        for tree_index, tree in enumerate(self.trees):
            try:
                tree_predictions = tree.predict_matrix(feature_matrix)
            except TransientComputationError as exc:
                logger.debug("Tree skipped during batch voting", tree_index=tree_index, reason=str(exc))
                continue
            counts[tree_predictions, sample_index] += 1
        return counts

    def predict_matrix(self, feature_matrix: np.ndarray) -> np.ndarray:
        """Return majority-vote class ids for every row; ties go to the lowest id.

        Args:
            feature_matrix (np.ndarray): 2-D encoded feature matrix.

        Returns:
            np.ndarray: 1-D int64 array of predicted class ids.
        """
        # np.argmax returns the first maximum, i.e. the lowest class id on ties.
        return np.argmax(self.vote_counts(feature_matrix), axis=0).astype(np.int64)

    def vote_share(self, feature_matrix: np.ndarray, class_id: int) -> np.ndarray:
        """Return, per row, the fraction of voting trees that chose `class_id`.

        Rows on which no tree voted get 0.5.
        """
        counts = self.vote_counts(feature_matrix)
        totals = counts.sum(axis=0)
        chosen = counts[class_id] if class_id < counts.shape[0] else np.zeros_like(totals)
        return np.divide(chosen, totals, out=np.full(totals.shape, 0.5, dtype=np.float64), where=totals > 0)

    @cached_property
    def n_classes(self) -> int:
        """int: One more than the largest class id predicted by any leaf."""
        return 1 + max(int(tree.flattened.category.max()) for tree in self.trees)


# ---------------------------------------------------------------------------
# Public models -- Evaluation
# ---------------------------------------------------------------------------


class ConfusionMatrix(BaseModel):
    """Binary confusion counts where class id 1 is the positive class."""

    model_config = ConfigDict(frozen=True)

    tp: int = Field(ge=0, description="Predicted 1, actual 1.")
    tn: int = Field(ge=0, description="Predicted 0, actual 0.")
    fp: int = Field(ge=0, description="Predicted 1, actual 0.")
    fn: int = Field(ge=0, description="Predicted 0, actual 1.")


class RocPoint(BaseModel):
    """One point of a ROC curve."""

    model_config = ConfigDict(frozen=True)

    fpr: float = Field(ge=0.0, le=1.0, description="False positive rate.")
    tpr: float = Field(ge=0.0, le=1.0, description="True positive rate.")


class EvaluationMetrics(BaseModel):
    """Held-out evaluation of a trained model.

    Accuracy, precision, recall and F1 are percentages in [0, 100]; AUC is in
    the unit interval.
    """

    model_config = ConfigDict(frozen=True)

    accuracy: float = Field(ge=0.0, le=100.0, description="Share of correct predictions, in percent.")
    precision: float = Field(ge=0.0, le=100.0, description="tp / (tp + fp), in percent.")
    recall: float = Field(ge=0.0, le=100.0, description="tp / (tp + fn), in percent.")
    f1_score: float = Field(ge=0.0, le=100.0, description="Harmonic mean of precision and recall, in percent.")
    train_size: int = Field(ge=0, description="Number of training rows.")
    test_size: int = Field(ge=0, description="Number of held-out rows.")
    confusion_matrix: ConfusionMatrix = Field(description="Binary confusion counts.")
    roc_curve: tuple[RocPoint, ...] = Field(description="ROC points sorted by ascending false positive rate.")
    auc: float = Field(ge=0.0, le=1.0, description="Trapezoidal area under the ROC curve.")


class FeatureImportance(BaseModel):
    """Permutation importance of one feature, as a share of the total in percent."""

    model_config = ConfigDict(frozen=True)

    feature: str = Field(description="Feature column name.")
    importance: float = Field(ge=0.0, le=100.0, description="Share of the total accuracy drop, in percent.")


# ---------------------------------------------------------------------------
# Public models -- Trained model, versions, predictions
# ---------------------------------------------------------------------------


class TrainedModel(BaseModel):
    """Immutable result of one successful training run.

    Holds everything needed to predict new rows without retraining: the
    feature configuration, encodings, target encoding and the fitted forest,
    together with the evaluation that was computed when it was trained.
    """

    model_config = ConfigDict(frozen=True)

    hyperparameters: HyperparameterSet = Field(description="Forest configuration used for fitting.")
    feature_config: FeatureConfig = Field(description="Features, target and column kinds.")
    encodings: Encodings = Field(description="Category maps and normalization statistics.")
    target_encoding: TargetEncoding = Field(description="Target label to class id mapping.")
    forest: Forest = Field(description="The fitted ensemble.")
    metrics: EvaluationMetrics = Field(description="Held-out evaluation metrics.")
    feature_importance: tuple[FeatureImportance, ...] = Field(description="Permutation importance per feature.")
    created_at: datetime = Field(description="When training finished.")
    dataset_size: int = Field(ge=0, description="Rows in the training dataset; 0 when unknown.")

    @field_validator("feature_importance", mode="after")
    @classmethod
    def _validate_importance_total(cls, value: tuple[FeatureImportance, ...]) -> tuple[FeatureImportance, ...]:
        """Validate that importances sum to 100 percent, or are all zero.

        Raises:
            ValueError: If the importances sum to anything else.
        """
        total = sum(item.importance for item in value)
        if value and not (math.isclose(total, 100.0, abs_tol=1e-6) or total == 0.0):
            raise ValueError(f"feature importance must sum to 100 or be all zero, got {total:.6f}")
        return value


class ModelVersion(BaseModel):
    """A named, timestamped snapshot in a session's version history."""

    model_config = ConfigDict(frozen=True)

    id: VersionId = Field(description="Unique identifier of the version.")
    version: str = Field(description="Display label, e.g. 'v1.0'.")
    created_at: datetime = Field(description="When the version was recorded.")
    model: TrainedModel = Field(description="The trained model.")


class PredictionResult(BaseModel):
    """Outcome of predicting one row."""

    model_config = ConfigDict(frozen=True)

    class_id: int = Field(description="Predicted class id.")
    label: str = Field(description="Decoded human-readable label, or 'Unknown'.")
    confidence: float = Field(ge=0.0, le=1.0, description="Share of tree votes for the predicted class.")


class PredictionRecord(BaseModel):
    """One entry of a session's prediction history."""

    model_config = ConfigDict(frozen=True)

    inputs: dict[str, RawValue] = Field(description="Feature values as submitted.")
    label: str = Field(description="Decoded predicted label.")
    class_id: int = Field(description="Raw predicted class id.")
    confidence: float = Field(ge=0.0, le=1.0, description="Vote-based confidence score.")
    created_at: datetime = Field(description="When the prediction was made.")


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _flatten_tree(root: TreeNode) -> _FlatTree:
    """Convert a node tree into parallel arrays in pre-order."""
    features: list[int] = []
    thresholds: list[float] = []
    lefts: list[int] = []
    rights: list[int] = []
    categories: list[int] = []

    def visit(node: TreeNode) -> int:
        node_id = len(features)
        features.append(-1)
        thresholds.append(0.0)
        lefts.append(-1)
        rights.append(-1)
        categories.append(0)
        if isinstance(node, LeafNode):
            categories[node_id] = node.category
            return node_id
        features[node_id] = node.column
        thresholds[node_id] = node.value
        lefts[node_id] = visit(node.left)
        rights[node_id] = visit(node.right)
        return node_id

    visit(root)
    return _FlatTree(
        feature=np.asarray(features, dtype=np.intp),
        threshold=np.asarray(thresholds, dtype=np.float64),
        left=np.asarray(lefts, dtype=np.intp),
        right=np.asarray(rights, dtype=np.intp),
        category=np.asarray(categories, dtype=np.int64),
    )


def _node_depth(node: TreeNode) -> int:
    if isinstance(node, LeafNode):
        return 0
    return 1 + max(_node_depth(node.left), _node_depth(node.right))
