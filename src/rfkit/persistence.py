"""Model file export/import and prediction history export.

A trained model is written as a single JSON document:

```
{
  "version": "1.0",
  "timestamp": "<ISO-8601>",
  "classifier": {
    "options": {"nEstimators", "maxDepth", "minNumSamples", "seed",
                "encodingMaps", "targetEncoding", "targetKind", "targetMedian",
                "featureConfig", "featureStats"},
    "trees": [{"root": <node>, "gain": <number>}, ...]
  },
  "metrics": {...},
  "featureImportance": [{"feature", "importance"}, ...],
  "featureConfig": {"features", "target", "featureTypes"},
  "datasetSize": <int>
}
```

A node is either a leaf `{"category": <class id>}` or a split
`{"column": <feature index>, "value": <threshold>, "left": <node>, "right": <node>}`;
samples with `sample[column] < value` take the left branch.

`targetEncoding` is the flat label to class id map. Files without `targetKind`
are read as median-split when their two labels are `"> m"` (id 1) and `"≤ m"`
(id 0), and as categorical otherwise.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Final, Literal

import polars as pl
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from rfkit.dataset import ColumnKind
from rfkit.exceptions import SerializationError
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
    NumericStats,
    PredictionRecord,
    RocPoint,
    TargetEncoding,
    TrainedModel,
    TreeNode,
)

__all__ = [
    "FORMAT_VERSION",
    "export_model",
    "export_predictions_csv",
    "import_model",
    "load_model",
    "save_model",
]

FORMAT_VERSION: Final[str] = "1.0"

_MEDIAN_LABEL: Final = re.compile(r"([>≤]) (-?\d+(?:\.\d+)?)")

# ---------------------------------------------------------------------------
# File format models
# ---------------------------------------------------------------------------


class _FileModel(BaseModel):
    """Base for file format models: camelCase keys on disk, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FeatureConfigDocument(_FileModel):
    features: list[str] = Field(description="Ordered feature column names.")
    target: str = Field(description="The column being predicted.")
    feature_types: dict[str, ColumnKind] = Field(default_factory=dict, description="Column kind per column.")


class _ClassifierOptions(_FileModel):
    n_estimators: int = Field(ge=1, description="Number of trees.")
    max_depth: int = Field(ge=1, description="Maximum depth of each tree.")
    min_num_samples: int = Field(ge=2, description="Minimum samples a node needs before it may split.")
    seed: int = Field(description="Seed used for bootstrap sampling.")
    encoding_maps: dict[str, dict[str, int]] = Field(description="Category maps per categorical feature.")
    target_encoding: dict[str, int] = Field(description="Target label to class id mapping.")
    target_kind: Literal["categorical", "median_split"] | None = Field(
        default=None, description="How the target was encoded; inferred from the labels when absent."
    )
    target_median: float | None = Field(default=None, description="Split point of a median-split target.")
    feature_config: _FeatureConfigDocument = Field(description="Features, target and column kinds.")
    feature_stats: dict[str, NumericStats] = Field(description="Normalization statistics per numeric feature.")


class _ClassifierDocument(_FileModel):
    options: _ClassifierOptions = Field(description="Forest configuration and encoding artifacts.")
    trees: list[DecisionTree] = Field(min_length=1, description="Constituent trees.")


class _MetricsDocument(_FileModel):
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    train_size: int
    test_size: int
    confusion_matrix: ConfusionMatrix
    roc_curve: list[RocPoint]
    auc: float


class _ModelFile(_FileModel):
    version: str = Field(description="File format version.")
    timestamp: datetime = Field(description="When the model was trained.")
    classifier: _ClassifierDocument = Field(description="The fitted forest and its options.")
    metrics: _MetricsDocument = Field(description="Held-out evaluation metrics.")
    feature_importance: list[FeatureImportance] = Field(description="Permutation importance per feature.")
    feature_config: _FeatureConfigDocument = Field(description="Features, target and column kinds.")
    dataset_size: int = Field(default=0, ge=0, description="Rows in the training dataset.")


# ---------------------------------------------------------------------------
# Public interface -- Model files
# ---------------------------------------------------------------------------


def export_model(model: TrainedModel) -> str:
    """Serialize a trained model to JSON text in the model file format.

    Args:
        model (TrainedModel): The model to serialize.

    Returns:
        str: Pretty-printed JSON document.
    """
    feature_config = _FeatureConfigDocument.model_validate(model.feature_config.model_dump())
    document = _ModelFile(
        version=FORMAT_VERSION,
        timestamp=model.created_at,
        classifier=_ClassifierDocument(
            options=_ClassifierOptions(
                n_estimators=model.hyperparameters.n_estimators,
                max_depth=model.hyperparameters.max_depth,
                min_num_samples=model.hyperparameters.min_samples_split,
                seed=model.forest.seed,
                encoding_maps=model.encodings.category_maps,
                target_encoding=model.target_encoding.classes,
                target_kind=model.target_encoding.kind,
                target_median=model.target_encoding.median,
                feature_config=feature_config,
                feature_stats=model.encodings.numeric_stats,
            ),
            trees=list(model.forest.trees),
        ),
        metrics=_MetricsDocument.model_validate(model.metrics.model_dump()),
        feature_importance=list(model.feature_importance),
        feature_config=feature_config,
        dataset_size=model.dataset_size,
    )
    return document.model_dump_json(by_alias=True, indent=2)


def import_model(text: str, *, source: str | None = None) -> TrainedModel:
    """Rebuild a trained model from JSON text in the model file format.

    Args:
        text (str): The JSON document.
        source (str | None): Description of where `text` came from, used in errors.

    Returns:
        TrainedModel: The reconstructed model; its predictions equal those of
            the model that was exported.

    Raises:
        SerializationError: If the text is not valid JSON, does not match the
            file format, has an unsupported version, or is internally inconsistent.
    """
    try:
        document = _ModelFile.model_validate_json(text)
    except PydanticValidationError as exc:
        raise SerializationError(f"Invalid model file: {exc.error_count()} validation error(s)", source) from exc

    if document.version != FORMAT_VERSION:
        raise SerializationError(
            f"Unsupported model file version '{document.version}', expected '{FORMAT_VERSION}'",
            source,
        )

    options = document.classifier.options
    try:
        model = TrainedModel(
            hyperparameters=HyperparameterSet(
                n_estimators=options.n_estimators,
                max_depth=options.max_depth,
                min_samples_split=options.min_num_samples,
            ),
            feature_config=FeatureConfig.model_validate(options.feature_config.model_dump()),
            encodings=Encodings(category_maps=options.encoding_maps, numeric_stats=options.feature_stats),
            target_encoding=_target_encoding_from(options),
            forest=Forest(trees=tuple(document.classifier.trees), seed=options.seed),
            metrics=EvaluationMetrics.model_validate(document.metrics.model_dump()),
            feature_importance=tuple(document.feature_importance),
            created_at=document.timestamp,
            dataset_size=document.dataset_size,
        )
    except PydanticValidationError as exc:
        raise SerializationError(f"Invalid model file: {exc.error_count()} validation error(s)", source) from exc

    _check_consistency(model, source)
    logger.info(
        "Imported model",
        source=source,
        n_trees=len(model.forest.trees),
        features=list(model.feature_config.features),
    )
    return model


def save_model(model: TrainedModel, path: str | Path) -> Path:
    """Write a model file.

    Args:
        model (TrainedModel): The model to save.
        path (str | Path): Destination file path.

    Returns:
        Path: The written path.

    Raises:
        SerializationError: If the file cannot be written.
    """
    destination = Path(path)
    try:
        destination.write_text(export_model(model), encoding="utf-8")
    except OSError as exc:
        raise SerializationError(f"Could not write model file: {exc}", str(destination)) from exc
    logger.info("Saved model", path=str(destination))
    return destination


def load_model(path: str | Path) -> TrainedModel:
    """Read a model file written by :func:`save_model`.

    Raises:
        SerializationError: If the file cannot be read or is not a valid model file.
    """
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SerializationError(f"Could not read model file: {exc}", str(source)) from exc
    return import_model(text, source=str(source))


# ---------------------------------------------------------------------------
# Public interface -- Prediction export
# ---------------------------------------------------------------------------


def export_predictions_csv(records: Sequence[PredictionRecord], features: Sequence[str]) -> str:
    """Render prediction history as CSV text.

    The header is `Timestamp,<features...>,Prediction,Confidence %`, with one
    row per record in the given order and confidence as a percentage with one
    decimal place. A feature may share its name with a fixed column; both
    columns are kept.

    Args:
        records (Sequence[PredictionRecord]): Predictions to export.
        features (Sequence[str]): Feature columns, in output order.

    Returns:
        str: CSV text including the header row.

    Examples:
        >>> export_predictions_csv([], ["x1"]).splitlines()
        ['Timestamp,x1,Prediction,Confidence %']
    """
    header = ["Timestamp", *features, "Prediction", "Confidence %"]
    columns: list[list[str | None]] = [
        [record.created_at.isoformat() for record in records],
        *([_format_cell(record.inputs.get(feature)) for record in records] for feature in features),
        [record.label for record in records],
        [f"{record.confidence * 100:.1f}" for record in records],
    ]

    # Positional column names, since polars frames cannot hold duplicate names.
    return _write_rows([[name] for name in header]) + _write_rows(columns)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _check_consistency(model: TrainedModel, source: str | None) -> None:
    """Validate cross-references between the feature config, encodings and trees.

    Raises:
        SerializationError: If a feature lacks its encoding artifact, or a tree
            tests a column outside the feature vector.
    """
    config = model.feature_config
    for feature in config.features:
        if config.kind_of(feature) == "categorical" and feature not in model.encodings.category_maps:
            raise SerializationError(f"Model file has no encoding map for categorical feature '{feature}'", source)
        if config.kind_of(feature) == "numeric" and feature not in model.encodings.numeric_stats:
            raise SerializationError(f"Model file has no statistics for numeric feature '{feature}'", source)

    n_features = len(config.features)
    for tree_index, tree in enumerate(model.forest.trees):
        max_column = _max_column(tree.root)
        if max_column >= n_features:
            raise SerializationError(
                f"Tree {tree_index} tests column {max_column} but the model has {n_features} features",
                source,
            )


def _target_encoding_from(options: _ClassifierOptions) -> TargetEncoding:
    kind = options.target_kind
    median = options.target_median
    if kind is None:
        median = _median_from_labels(options.target_encoding)
        kind = "categorical" if median is None else "median_split"
    return TargetEncoding(kind=kind, classes=options.target_encoding, median=median)


def _median_from_labels(classes: dict[str, int]) -> float | None:
    """Return `m` when `classes` is exactly `{"> m": 1, "≤ m": 0}`, else None."""
    if len(classes) != 2:
        return None
    matches = [_MEDIAN_LABEL.fullmatch(label) for label in classes]
    if not all(matches):
        return None
    sides = {match.group(1): (match.group(2), classes[match.group(0)]) for match in matches}
    if set(sides) != {">", "≤"} or sides[">"][0] != sides["≤"][0]:
        return None
    if sides[">"][1] != 1 or sides["≤"][1] != 0:
        return None
    return float(sides[">"][0])


def _max_column(node: TreeNode) -> int:
    if isinstance(node, LeafNode):
        return -1
    return max(node.column, _max_column(node.left), _max_column(node.right))


def _format_cell(value: object) -> str | None:
    return None if value is None else str(value)


def _write_rows(columns: Sequence[list[str | None]]) -> str:
    frame = pl.DataFrame([pl.Series(f"column_{i}", values, dtype=pl.String) for i, values in enumerate(columns)])
    return frame.write_csv(include_header=False)
