"""Explicit session state: active model, version history, and prediction history."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path

import numpy as np
from loguru import logger

from rfkit.config import RfkitSettings, get_settings
from rfkit.dataset import RawValue, TabularDataset
from rfkit.exceptions import SerializationError, ValidationError
from rfkit.forest.models import FeatureConfig, ModelVersion, PredictionRecord, PredictionResult, TrainedModel
from rfkit.forest.pipeline import train_model
from rfkit.forest.prediction import predict
from rfkit.identifier import generate_version_id, version_label
from rfkit.persistence import export_predictions_csv, load_model, save_model


class ModelSession:
    """State owned by one interactive workspace.

    A session holds the dataset being worked on, the active model, an
    append-only history of every model version trained or loaded, and a
    bounded history of recent predictions (most recent first). Pass the
    session to whatever needs it; nothing here is process-global.

    Version history appends are guarded by a lock so that concurrent
    trainings cannot lose a version.

    Examples:
        >>> session = ModelSession()  # doctest: +SKIP
        >>> version = session.train(dataset, config)  # doctest: +SKIP
        >>> version.version  # doctest: +SKIP
        'v1.0'
        >>> session.predict({"x1": 3.2, "x2": 0.4}).label  # doctest: +SKIP
        'A'
    """

    def __init__(self, *, settings: RfkitSettings | None = None, rng: np.random.Generator | None = None) -> None:
        """Initialize an empty session.

        Args:
            settings (RfkitSettings | None): Tunable constants; defaults to
                :func:`~rfkit.config.get_settings`.
            rng (np.random.Generator | None): Random source for train/test
                shuffles and permutation importance. `None` uses fresh entropy
                on every training run.
        """
        self._settings = settings if settings is not None else get_settings()
        self._rng = rng
        self._lock = threading.Lock()
        self._dataset: TabularDataset | None = None
        self._active_model: TrainedModel | None = None
        self._versions: list[ModelVersion] = []
        self._predictions: deque[PredictionRecord] = deque(maxlen=self._settings.prediction_history_limit)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def dataset(self) -> TabularDataset | None:
        """TabularDataset | None: The dataset of the current workspace, if any."""
        return self._dataset

    @property
    def active_model(self) -> TrainedModel | None:
        """TrainedModel | None: The model used for predictions."""
        return self._active_model

    @property
    def versions(self) -> tuple[ModelVersion, ...]:
        """tuple[ModelVersion, ...]: Every recorded version, newest first."""
        with self._lock:
            return tuple(reversed(self._versions))

    @property
    def predictions(self) -> tuple[PredictionRecord, ...]:
        """tuple[PredictionRecord, ...]: Recent predictions, newest first."""
        with self._lock:
            return tuple(self._predictions)

    @property
    def next_version_label(self) -> str:
        """str: Label the next recorded version will get, e.g. `"v1.3"`."""
        with self._lock:
            return version_label(len(self._versions))

    # -------------------------------------------------------------------------
    # Workspace operations
    # -------------------------------------------------------------------------

    def use_dataset(self, dataset: TabularDataset) -> None:
        """Make `dataset` the current workspace dataset."""
        self._dataset = dataset
        logger.info("Dataset selected", rows=dataset.height, columns=dataset.columns)

    def train(self, dataset: TabularDataset | None, config: FeatureConfig) -> ModelVersion:
        """Train a model, make it active, and record it as a new version.

        Args:
            dataset (TabularDataset | None): Rows to train on. `None` reuses the
                current workspace dataset.
            config (FeatureConfig): Selected features and target.

        Returns:
            ModelVersion: The recorded version.

        Raises:
            ValidationError: If no dataset is available or the configuration is
                invalid; see :func:`~rfkit.forest.pipeline.train_model` for the
                other validation failures. The session is unchanged on failure.
        """
        training_data = dataset if dataset is not None else self._dataset
        if training_data is None:
            raise ValidationError("Upload a dataset before training")

        model = train_model(training_data, config, settings=self._settings, rng=self._rng)
        self._dataset = training_data
        return self._record(model)

    def predict(self, raw_values: Mapping[str, RawValue]) -> PredictionResult:
        """Predict one row with the active model and add it to the prediction history.

        Raises:
            ValidationError: If there is no active model, or a numeric value is invalid.
            UnseenCategoryError: If a categorical value was not seen during training.
        """
        model = self._active_model
        if model is None:
            raise ValidationError("Train or load a model before predicting")

        result = predict(model, raw_values)
        record = PredictionRecord(
            inputs={feature: raw_values.get(feature) for feature in model.feature_config.features},
            label=result.label,
            class_id=result.class_id,
            confidence=result.confidence,
            created_at=datetime.now(UTC),
        )
        with self._lock:
            self._predictions.appendleft(record)
        return result

    def load_version(self, version_id: str) -> ModelVersion:
        """Make a recorded version the active model.

        The workspace dataset is discarded; only the model is restored.

        Raises:
            KeyError: If no version has `version_id`.
        """
        with self._lock:
            version = next((item for item in self._versions if item.id == version_id), None)
        if version is None:
            raise KeyError(f"No model version with id '{version_id}'")
        self._active_model = version.model
        self._dataset = None
        logger.info("Loaded model version", version=version.version, id=version.id)
        return version

    def save_model(self, path: str | Path) -> Path:
        """Write the active model to a model file.

        Raises:
            ValidationError: If there is no active model.
            SerializationError: If the file cannot be written.
        """
        if self._active_model is None:
            raise ValidationError("Train or load a model before saving")
        return save_model(self._active_model, path)

    def load_model(self, path: str | Path) -> ModelVersion:
        """Load a model file, make it active, and record it as a new version.

        Raises:
            SerializationError: If the file is unreadable or invalid; the active
                model and histories are left unchanged.
        """
        model = load_model(path)
        self._dataset = None
        return self._record(model)

    def export_predictions(self, path: str | Path | None = None) -> str:
        """Export the prediction history as CSV, newest first.

        Args:
            path (str | Path | None): Optional file to write the CSV to.

        Returns:
            str: The CSV text.

        Raises:
            ValidationError: If there is no active model to take feature names from.
            SerializationError: If `path` cannot be written.
        """
        if self._active_model is None:
            raise ValidationError("Train or load a model before exporting predictions")
        text = export_predictions_csv(self.predictions, self._active_model.feature_config.features)
        if path is not None:
            try:
                Path(path).write_text(text, encoding="utf-8")
            except OSError as exc:
                raise SerializationError(f"Could not write predictions: {exc}", str(path)) from exc
        return text

    # -------------------------------------------------------------------------
    # Private helpers
    # -------------------------------------------------------------------------

    def _record(self, model: TrainedModel) -> ModelVersion:
        with self._lock:
            version = ModelVersion(
                id=generate_version_id(),
                version=version_label(len(self._versions)),
                created_at=datetime.now(UTC),
                model=model,
            )
            self._versions.append(version)
            self._active_model = model
        log_fields = {"version": version.version, "accuracy": round(model.metrics.accuracy, 2)}
        logger.info("Recorded model version", **log_fields)
        return version
