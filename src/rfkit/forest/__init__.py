"""Random forest sub-package: models, preprocessing, fitting, evaluation, and prediction."""

from __future__ import annotations

from rfkit.forest.models import (
    ConfusionMatrix,
    DecisionTree,
    Encodings,
    EvaluationMetrics,
    FeatureConfig,
    FeatureImportance,
    Forest,
    HyperparameterSet,
    LeafNode,
    ModelVersion,
    NumericStats,
    PredictionRecord,
    PredictionResult,
    RocPoint,
    SplitNode,
    TargetEncoding,
    TrainedModel,
    TreeNode,
)
from rfkit.forest.pipeline import train_model
from rfkit.forest.prediction import predict

__all__ = [
    "ConfusionMatrix",
    "DecisionTree",
    "Encodings",
    "EvaluationMetrics",
    "FeatureConfig",
    "FeatureImportance",
    "Forest",
    "HyperparameterSet",
    "LeafNode",
    "ModelVersion",
    "NumericStats",
    "PredictionRecord",
    "PredictionResult",
    "RocPoint",
    "SplitNode",
    "TargetEncoding",
    "TrainedModel",
    "TreeNode",
    "predict",
    "train_model",
]
