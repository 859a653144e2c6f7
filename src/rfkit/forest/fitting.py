"""Random forest fitting and conversion of fitted sklearn trees into `TreeNode` structures."""

from __future__ import annotations

from typing import Any

import numpy as np
from loguru import logger
from sklearn.ensemble import RandomForestClassifier

from rfkit.forest.models import DecisionTree, Forest, HyperparameterSet, LeafNode, SplitNode, TreeNode

# ---------------------------------------------------------------------------
# Public interface -- Forest fitting
# ---------------------------------------------------------------------------


def fit_forest(
    feature_matrix: np.ndarray,
    labels: np.ndarray,
    hyperparameters: HyperparameterSet,
    *,
    seed: int = 42,
) -> Forest:
    """Fit a random forest classifier and convert it into a :class:`Forest`.

    Trees are grown by `sklearn.ensemble.RandomForestClassifier` on bootstrap
    samples with Gini splitting, considering every feature at each split. The
    fixed `seed` makes the bootstrap samples reproducible for identical inputs.

    Args:
        feature_matrix (np.ndarray): 2-D encoded feature matrix with shape `(n_samples, n_features)`.
        labels (np.ndarray): 1-D int class ids with shape `(n_samples,)`.
        hyperparameters (HyperparameterSet): Tree count, depth, and split size.
        seed (int): Random seed for bootstrap sampling.

    Returns:
        Forest: The fitted ensemble as immutable tree structures.
    """
    classifier = RandomForestClassifier(
        n_estimators=hyperparameters.n_estimators,
        max_depth=hyperparameters.max_depth,
        min_samples_split=hyperparameters.min_samples_split,
        max_features=None,
        bootstrap=True,
        random_state=seed,
    )
    classifier.fit(feature_matrix, labels)

    classes = np.asarray(classifier.classes_, dtype=np.int64)
    trees = tuple(convert_tree(estimator, classes) for estimator in classifier.estimators_)
    logger.debug(
        "Converted fitted trees",
        n_trees=len(trees),
        max_depth=max(tree.depth for tree in trees),
    )
    return Forest(trees=trees, seed=seed)


def convert_tree(estimator: Any, classes: np.ndarray) -> DecisionTree:
    """Convert one fitted sklearn decision tree into a :class:`DecisionTree`.

    sklearn routes a sample left when `x <= threshold`. Each threshold is
    stored as the next representable float above it, so the `x < value` test
    used by :class:`SplitNode` takes the same branch.

    Args:
        estimator (Any): A fitted `sklearn.tree.DecisionTreeClassifier`.
        classes (np.ndarray): Class ids indexed by the columns of the tree's
            `value` array, i.e. the forest's `classes_`.

    Returns:
        DecisionTree: The converted tree with its root-split impurity decrease.
    """
    sklearn_tree = estimator.tree_
    return DecisionTree(
        root=_convert_node(sklearn_tree, classes, node_id=0),
        gain=_root_gain(sklearn_tree),
    )


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _convert_node(sklearn_tree: Any, classes: np.ndarray, node_id: int) -> TreeNode:
    """Recursively convert the subtree rooted at `node_id`.

    Args:
        sklearn_tree (Any): The `tree_` attribute of a fitted sklearn tree.
        classes (np.ndarray): Class ids indexed by value-array column.
        node_id (int): Index of the node in `sklearn_tree`.

    Returns:
        TreeNode: The converted node.
    """
    left_child = int(sklearn_tree.children_left[node_id])
    right_child = int(sklearn_tree.children_right[node_id])
    if left_child == right_child:  # Both are TREE_LEAF (-1) at leaves
        class_index = int(np.argmax(sklearn_tree.value[node_id][0]))
        return LeafNode(category=int(classes[class_index]))

    threshold = float(sklearn_tree.threshold[node_id])
    return SplitNode(
        column=int(sklearn_tree.feature[node_id]),
        value=float(np.nextafter(threshold, np.inf)),
        left=_convert_node(sklearn_tree, classes, left_child),
        right=_convert_node(sklearn_tree, classes, right_child),
    )


def _root_gain(sklearn_tree: Any) -> float:
    left_child = int(sklearn_tree.children_left[0])
    right_child = int(sklearn_tree.children_right[0])
    if left_child == right_child:
        return 0.0
    weights = sklearn_tree.weighted_n_node_samples
    impurity = sklearn_tree.impurity
    children_impurity = (
        weights[left_child] * impurity[left_child] + weights[right_child] * impurity[right_child]
    ) / weights[0]
    return float(max(impurity[0] - children_impurity, 0.0))
