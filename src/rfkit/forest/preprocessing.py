"""Preprocessing: categorical encoding, z-score normalization, and target encoding."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import NamedTuple

import numpy as np
import polars as pl
from loguru import logger

from rfkit.dataset import TabularDataset, format_category
from rfkit.exceptions import TooFewClassesError, UnseenCategoryError, ValidationError
from rfkit.forest.models import Encodings, FeatureConfig, NumericStats, RawValue, TargetEncoding


class PreparedData(NamedTuple):
    """Model-ready arrays produced by :func:`transform`.

    Attributes:
        features (np.ndarray): Float64 matrix of shape `(n_rows, n_features)`,
            columns in `FeatureConfig.features` order.
        labels (np.ndarray): Int64 class ids of shape `(n_rows,)`.
        target_encoding (TargetEncoding): Mapping between labels and class ids.
    """

    features: np.ndarray
    labels: np.ndarray
    target_encoding: TargetEncoding


# ---------------------------------------------------------------------------
# Public interface -- Configuration
# ---------------------------------------------------------------------------


def resolve_feature_config(config: FeatureConfig, dataset: TabularDataset) -> FeatureConfig:
    """Validate `config` against `dataset` and fill in undeclared column kinds.

    Columns of the config (features and target) without an explicit entry in
    `feature_types` take the kind detected when the dataset was parsed. The
    returned config is self-contained, so inference never needs the dataset.

    Args:
        config (FeatureConfig): The user's selection.
        dataset (TabularDataset): The dataset the model will be trained on.

    Returns:
        FeatureConfig: A config whose `feature_types` covers every feature and the target.

    Raises:
        ValidationError: If the selection is empty or the target is also a feature.
        DuplicateColumnsError: If a feature is listed twice.
        ColumnsNotFoundError: If a selected column is missing from the dataset.
    """
    config.validate_against(dataset.columns)
    detected = dataset.column_types
    feature_types = {
        col: config.feature_types.get(col, detected[col]) for col in (*config.features, config.target)
    }
    return config.model_copy(update={"feature_types": feature_types})


# ---------------------------------------------------------------------------
# Public interface -- Fit and transform
# ---------------------------------------------------------------------------


def fit(dataset: TabularDataset, config: FeatureConfig) -> Encodings:
    """Build category maps and normalization statistics from training rows.

    Categorical features get a value to index map in the order values are first
    encountered, top to bottom; missing values are encoded under the
    `unknown_category` sentinel. Numeric features are coerced to numbers
    (non-numeric and missing values become 0) and summarized by their
    population mean and standard deviation; a zero deviation is stored as 1.

    Args:
        dataset (TabularDataset): Training rows.
        config (FeatureConfig): Feature selection and column kinds.

    Returns:
        Encodings: The fitted encoding artifacts.
    """
    category_maps: dict[str, dict[str, int]] = {}
    numeric_stats: dict[str, NumericStats] = {}

    for feature in config.features:
        if config.kind_of(feature) == "categorical":
            labels = _category_labels(dataset.raw_column(feature))
            category_maps[feature] = {label: index for index, label in enumerate(dict.fromkeys(labels))}
        else:
            values = _numeric_values(dataset.column(feature))
            mean = float(values.mean()) if values.size else 0.0
            std = float(values.std()) if values.size else 0.0
            numeric_stats[feature] = NumericStats(mean=mean, std=std if std > 0.0 and math.isfinite(std) else 1.0)

    logger.debug(
        "Fitted encodings",
        categorical=list(category_maps),
        numeric=list(numeric_stats),
    )
    return Encodings(category_maps=category_maps, numeric_stats=numeric_stats)


def encode_target(dataset: TabularDataset, config: FeatureConfig) -> tuple[np.ndarray, TargetEncoding]:
    """Encode the target column into class ids.

    A categorical target maps each distinct value to an id in first-seen order.
    A numeric target is split at its median: values strictly greater than the
    median become class 1 (`"> {median}"`), all others class 0 (`"≤ {median}"`).

    Args:
        dataset (TabularDataset): Training rows.
        config (FeatureConfig): Feature selection and column kinds.

    Returns:
        tuple[np.ndarray, TargetEncoding]: Int64 class ids and the encoding.

    Raises:
        TooFewClassesError: If the target does not yield at least two classes.

    Examples:
        >>> dataset = TabularDataset.from_rows([{"x": i, "y": float(i)} for i in range(1, 11)])
        >>> config = FeatureConfig(features=("x",), target="y", feature_types={"y": "numeric"})
        >>> labels, encoding = encode_target(dataset, config)
        >>> labels.tolist()
        [0, 0, 0, 0, 0, 1, 1, 1, 1, 1]
        >>> sorted(encoding.classes)
        ['> 5.500', '≤ 5.500']
    """
    if config.kind_of(config.target) == "categorical":
        raw_labels = _category_labels(dataset.raw_column(config.target))
        classes = {label: class_id for class_id, label in enumerate(dict.fromkeys(raw_labels))}
        if len(classes) < 2:
            raise TooFewClassesError(target=config.target, n_classes=len(classes))
        labels = np.asarray([classes[label] for label in raw_labels], dtype=np.int64)
        return labels, TargetEncoding(kind="categorical", classes=classes)

    values = _numeric_values(dataset.column(config.target))
    median = float(np.median(values)) if values.size else 0.0
    labels = (values > median).astype(np.int64)
    n_classes = int(np.unique(labels).size)
    if n_classes < 2:
        raise TooFewClassesError(target=config.target, n_classes=n_classes)
    classes = {f"> {median:.3f}": 1, f"≤ {median:.3f}": 0}
    return labels, TargetEncoding(kind="median_split", classes=classes, median=median)


def transform(
    dataset: TabularDataset,
    config: FeatureConfig,
    encodings: Encodings,
    target_encoding: TargetEncoding | None = None,
) -> PreparedData:
    """Apply fitted encodings to a dataset.

    Categorical values absent from a category map encode as index 0; this
    leniency applies to training-time data only, see :func:`transform_row` for
    the strict inference path.

    Args:
        dataset (TabularDataset): Rows to transform.
        config (FeatureConfig): Feature selection and column kinds.
        encodings (Encodings): Fitted encodings.
        target_encoding (TargetEncoding | None): Existing target encoding. When
            omitted the target is encoded from `dataset` with :func:`encode_target`.

    Returns:
        PreparedData: Feature matrix, labels, and target encoding.

    Raises:
        TooFewClassesError: If the target has to be encoded and yields fewer than two classes.
    """
    columns: list[np.ndarray] = []
    for feature in config.features:
        if config.kind_of(feature) == "categorical":
            category_map = encodings.category_maps[feature]
            labels = _category_labels(dataset.raw_column(feature))
            columns.append(
                np.asarray([category_map.get(label, 0) for label in labels], dtype=np.float64)
            )
        else:
            stats = encodings.numeric_stats[feature]
            columns.append((_numeric_values(dataset.column(feature)) - stats.mean) / stats.std)

    features = np.column_stack(columns) if columns else np.empty((dataset.height, 0), dtype=np.float64)

    if target_encoding is None:
        labels, target_encoding = encode_target(dataset, config)
    else:
        labels = _apply_target_encoding(dataset, config.target, target_encoding)
    return PreparedData(features=features, labels=labels, target_encoding=target_encoding)


def transform_row(values: Mapping[str, RawValue], config: FeatureConfig, encodings: Encodings) -> np.ndarray:
    """Encode one row of raw input for prediction.

    This is the strict counterpart of :func:`transform`: categorical values
    must have been seen during training and numeric values must parse as
    finite numbers. A missing categorical value is looked up under the
    `unknown_category` sentinel, so it is accepted only if the training data had
    missing values in that column too.

    Args:
        values (Mapping[str, RawValue]): Raw value per feature name.
        config (FeatureConfig): Feature selection and column kinds.
        encodings (Encodings): Fitted encodings.

    Returns:
        np.ndarray: 1-D float64 vector in `config.features` order.

    Raises:
        UnseenCategoryError: If a categorical value was not seen during training.
        ValidationError: If a numeric value is missing or not a finite number.
    """
    encoded = np.empty(len(config.features), dtype=np.float64)
    for position, feature in enumerate(config.features):
        value = values.get(feature)
        if config.kind_of(feature) == "categorical":
            category_map = encodings.category_maps[feature]
            label = format_category(value)
            if label not in category_map:
                raise UnseenCategoryError(feature=feature, value=label, known_values=list(category_map))
            encoded[position] = category_map[label]
        else:
            encoded[position] = encodings.numeric_stats[feature].normalize(_parse_number(feature, value))
    return encoded


def decode_category(encodings: Encodings, feature: str, index: int) -> str:
    """Return the category label encoded as `index` for `feature`.

    Raises:
        KeyError: If `feature` has no category map or `index` is not used in it.
    """
    for label, mapped_index in encodings.category_maps[feature].items():
        if mapped_index == index:
            return label
    raise KeyError(f"No category with index {index} for feature '{feature}'")


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _category_labels(series: pl.Series) -> list[str]:
    return [format_category(value) for value in series.to_list()]


def _numeric_values(series: pl.Series) -> np.ndarray:
    values = series.cast(pl.Float64, strict=False).fill_nan(0.0).fill_null(0.0).to_numpy().astype(np.float64)
    return np.where(np.isfinite(values), values, 0.0)


def _apply_target_encoding(dataset: TabularDataset, target: str, target_encoding: TargetEncoding) -> np.ndarray:
    if target_encoding.kind == "median_split":
        return (_numeric_values(dataset.column(target)) > target_encoding.median).astype(np.int64)
    # Labels absent from the encoding fall back to class 0, mirroring the feature leniency.
    return np.asarray(
        [target_encoding.classes.get(label, 0) for label in _category_labels(dataset.raw_column(target))],
        dtype=np.int64,
    )


def _parse_number(feature: str, value: RawValue) -> float:
    if value is None or isinstance(value, bool) or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Missing value for numeric feature '{feature}'")
    try:
        number = float(value)
    except ValueError:
        raise ValidationError(f"Invalid number for {feature}: '{value}'") from None
    if not math.isfinite(number):
        raise ValidationError(f"Invalid number for {feature}: '{value}'")
    return number
