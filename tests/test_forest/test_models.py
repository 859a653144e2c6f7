"""Tests for the forest data models: configuration, encodings, tree structure, and voting."""

from __future__ import annotations

from collections import Counter
from unittest import mock

import numpy as np
import pydantic
import pytest
from pytest_check import check

from rfkit.exceptions import ColumnsNotFoundError, DuplicateColumnsError, TransientComputationError, ValidationError
from rfkit.forest.models import (
    DecisionTree,
    FeatureConfig,
    FeatureImportance,
    Forest,
    LeafNode,
    NumericStats,
    SplitNode,
    TargetEncoding,
    _flatten_tree,
)


class TestFeatureConfig:
    """Tests for FeatureConfig kinds and validation."""

    def test_undeclared_columns_are_numeric(self) -> None:
        """Columns without a declared kind should be treated as numeric."""
        # Arrange
        config = FeatureConfig(features=("a", "b"), target="y", feature_types={"b": "categorical"})

        # Act & Assert
        with check:
            assert config.kind_of("a") == "numeric"
        with check:
            assert config.kind_of("b") == "categorical"

    def test_valid_selection_passes(self) -> None:
        """A selection of existing, distinct columns should validate."""
        # Arrange
        config = FeatureConfig(features=("a", "b"), target="y")

        # Act & Assert
        config.validate_against(["a", "b", "y", "unused"])

    def test_empty_features_rejected(self) -> None:
        """An empty feature selection should raise ValidationError."""
        with pytest.raises(ValidationError, match="at least one feature"):
            FeatureConfig(features=(), target="y").validate_against(["y"])

    def test_target_as_feature_rejected(self) -> None:
        """Selecting the target as a feature should raise ValidationError."""
        with pytest.raises(ValidationError, match="cannot also be a feature"):
            FeatureConfig(features=("a", "y"), target="y").validate_against(["a", "y"])

    def test_duplicate_features_rejected(self) -> None:
        """Listing a feature twice should raise DuplicateColumnsError."""
        with pytest.raises(DuplicateColumnsError):
            FeatureConfig(features=("a", "a"), target="y").validate_against(["a", "y"])

    def test_missing_column_rejected(self) -> None:
        """A feature absent from the dataset should raise ColumnsNotFoundError."""
        with pytest.raises(ColumnsNotFoundError) as exc_info:
            FeatureConfig(features=("a", "ghost"), target="y").validate_against(["a", "y"])
        with check:
            assert exc_info.value.missing_columns == ["ghost"]


class TestNumericStats:
    """Tests for NumericStats."""

    def test_normalize(self) -> None:
        """normalize should return the z-score."""
        with check:
            assert NumericStats(mean=10.0, std=2.0).normalize(14.0) == pytest.approx(2.0)

    def test_zero_std_rejected(self) -> None:
        """A zero standard deviation is never stored."""
        with pytest.raises(pydantic.ValidationError):
            NumericStats(mean=0.0, std=0.0)


class TestTargetEncoding:
    """Tests for TargetEncoding."""

    def test_encode_decode_round_trip(self) -> None:
        """Every label should decode back to itself after encoding."""
        # Arrange
        encoding = TargetEncoding(kind="categorical", classes={"yes": 0, "no": 1, "maybe": 2})

        # Act & Assert
        for label in encoding.classes:
            with check:
                assert encoding.decode(encoding.encode(label)) == label

    def test_unmapped_id_decodes_to_unknown(self) -> None:
        """An id outside the encoding should decode to 'Unknown'."""
        # Arrange
        encoding = TargetEncoding(kind="categorical", classes={"A": 0, "B": 1})

        # Act & Assert
        with check:
            assert encoding.decode(5) == "Unknown"

    def test_single_class_rejected(self) -> None:
        """Fewer than two classes should fail validation."""
        with pytest.raises(pydantic.ValidationError, match="at least 2 classes"):
            TargetEncoding(kind="categorical", classes={"A": 0})

    def test_median_split_requires_median(self) -> None:
        """A median-split encoding without a median should fail validation."""
        with pytest.raises(pydantic.ValidationError, match="requires a median"):
            TargetEncoding(kind="median_split", classes={"> 1.000": 1, "≤ 1.000": 0})


class TestDecisionTree:
    """Tests for DecisionTree routing."""

    def test_strictly_below_goes_left(self) -> None:
        """Samples strictly below the threshold go left; equal values go right."""
        # Arrange
        tree = _make_stump(column=0, value=0.5)

        # Act & Assert
        with check:
            assert tree.predict([0.4]) == 0
        with check:
            assert tree.predict([0.5]) == 1
        with check:
            assert tree.predict([0.9]) == 1

    def test_predict_matrix_matches_predict(self) -> None:
        """Batch routing should agree with per-sample routing."""
        # Arrange
        tree = DecisionTree(
            root=SplitNode(
                column=0,
                value=0.0,
                left=SplitNode(column=1, value=1.0, left=LeafNode(category=0), right=LeafNode(category=2)),
                right=LeafNode(category=1),
            )
        )
        matrix = np.array([[-1.0, 0.0], [-1.0, 2.0], [3.0, 0.0], [0.0, 5.0]])

        # Act
        batch = tree.predict_matrix(matrix)

        # Assert
        with check:
            assert batch.tolist() == [tree.predict(row.tolist()) for row in matrix]
        with check:
            assert batch.tolist() == [0, 2, 1, 1]
        with check:
            assert tree.depth == 2

    def test_out_of_range_column_raises_transient_error(self) -> None:
        """A sample too short for a tested column should raise TransientComputationError."""
        # Arrange
        tree = _make_stump(column=3, value=0.0)

        # Act & Assert
        with pytest.raises(TransientComputationError):
            tree.predict([1.0])
        with pytest.raises(TransientComputationError):
            tree.predict_matrix(np.zeros((2, 1)))

    def test_leaf_only_tree(self) -> None:
        """A single-leaf tree always predicts its category and has depth 0."""
        # Arrange
        tree = DecisionTree(root=LeafNode(category=1))

        # Act & Assert
        with check:
            assert tree.predict([42.0]) == 1
        with check:
            assert tree.depth == 0


class TestForest:
    """Tests for Forest voting."""

    def test_majority_vote(self) -> None:
        """The class with most votes wins."""
        # Arrange
        forest = Forest(
            trees=(_make_stump(0, 0.5), _make_stump(0, 0.5), DecisionTree(root=LeafNode(category=0))),
            seed=42,
        )

        # Act
        votes = forest.votes([0.9])

        # Assert
        with check:
            assert votes == Counter({1: 2, 0: 1})
        with check:
            assert forest.predict([0.9]) == 1

    def test_ties_go_to_lowest_class_id(self) -> None:
        """An even split of votes resolves to the lowest class id, per sample and per matrix."""
        # Arrange
        forest = Forest(
            trees=(DecisionTree(root=LeafNode(category=1)), DecisionTree(root=LeafNode(category=0))),
            seed=42,
        )

        # Act & Assert
        with check:
            assert forest.predict([0.0]) == 0
        with check:
            assert forest.predict_matrix(np.zeros((3, 1))).tolist() == [0, 0, 0]
        with check:
            assert Forest.winner(Counter({2: 3, 1: 3, 0: 1})) == 1

    def test_failing_tree_is_skipped(self) -> None:
        """A tree that cannot route the sample does not vote."""
        # Arrange
        forest = Forest(trees=(_make_stump(5, 0.0), DecisionTree(root=LeafNode(category=1))), seed=42)

        # Act
        votes = forest.votes([0.0, 0.0])
        shares = forest.vote_share(np.zeros((2, 2)), 1)

        # Assert
        with check:
            assert votes == Counter({1: 1})
        with check:
            assert shares.tolist() == [1.0, 1.0]

    def test_no_votes_raises_on_predict(self) -> None:
        """predict raises when no tree can vote."""
        # Arrange
        forest = Forest(trees=(_make_stump(5, 0.0),), seed=42)

        # Act & Assert
        with pytest.raises(TransientComputationError):
            forest.predict([0.0])
        with check:
            assert forest.vote_share(np.zeros((1, 1)), 1).tolist() == [0.5]

    def test_vote_counts_shape(self) -> None:
        """vote_counts has one row per class and one column per sample."""
        # Arrange
        forest = Forest(trees=(_make_stump(0, 0.5), DecisionTree(root=LeafNode(category=2))), seed=1)

        # Act
        counts = forest.vote_counts(np.array([[0.0], [1.0]]))

        # Assert
        with check:
            assert counts.shape == (3, 2)
        with check:
            assert counts[:, 0].tolist() == [1, 0, 1]
        with check:
            assert forest.n_classes == 3

    def test_tree_arrays_built_once(self) -> None:
        """Repeated batch voting should flatten each tree only once, and equality should ignore the cache."""
        # Arrange
        forest = Forest(trees=(_make_stump(0, 0.5), _make_stump(0, 0.25)), seed=7)
        fresh = Forest(trees=(_make_stump(0, 0.5), _make_stump(0, 0.25)), seed=7)
        matrix = np.array([[0.1], [0.4], [0.9]])

        # Act
        with mock.patch("rfkit.forest.models._flatten_tree", wraps=_flatten_tree) as flatten:
            first = forest.predict_matrix(matrix)
            second = forest.vote_share(matrix, 1)
            fresh.predict_matrix(matrix)

        # Assert
        with check:
            assert flatten.call_count == 4
        with check:
            assert first.tolist() == [0, 0, 1]
        with check:
            assert second.tolist() == [0.0, 0.5, 1.0]
        with check:
            assert forest == fresh

    def test_empty_forest_rejected(self) -> None:
        """A forest needs at least one tree."""
        with pytest.raises(pydantic.ValidationError):
            Forest(trees=(), seed=42)


class TestFeatureImportance:
    """Tests for FeatureImportance bounds."""

    def test_out_of_range_rejected(self) -> None:
        """Importance must lie in [0, 100]."""
        with pytest.raises(pydantic.ValidationError):
            FeatureImportance(feature="x", importance=101.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_stump(column: int, value: float) -> DecisionTree:
    """Build a one-split tree predicting 0 below `value` and 1 otherwise.

    Args:
        column (int): Feature index tested at the root.
        value (float): Split threshold.

    Returns:
        DecisionTree: The stump.
    """
    return DecisionTree(
        root=SplitNode(column=column, value=value, left=LeafNode(category=0), right=LeafNode(category=1)),
        gain=0.25,
    )
