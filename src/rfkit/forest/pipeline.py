"""Training pipeline orchestration: validate, encode, split, fit, evaluate, and rank features."""

from __future__ import annotations

from datetime import UTC, datetime

import numpy as np
from loguru import logger

from rfkit.config import RfkitSettings, get_settings
from rfkit.dataset import TabularDataset
from rfkit.forest.evaluation import evaluate
from rfkit.forest.fitting import fit_forest
from rfkit.forest.hyperparameters import select_hyperparameters
from rfkit.forest.importance import permutation_importance
from rfkit.forest.models import FeatureConfig, TrainedModel
from rfkit.forest.preprocessing import encode_target, fit, resolve_feature_config, transform
from rfkit.forest.splitting import train_test_split_indices
from rfkit.logging import log_stage

_POSITIVE_CLASS: int = 1


def train_model(
    dataset: TabularDataset,
    config: FeatureConfig,
    *,
    settings: RfkitSettings | None = None,
    rng: np.random.Generator | None = None,
) -> TrainedModel:
    """Train, evaluate, and package a random forest classifier.

    Every precondition is checked before any fitting work: the feature
    selection, the minimum row count, and the target's class count. Encodings
    and normalization statistics are fitted on the whole dataset, then rows
    are split into training and test sets. The forest is fitted on the
    training rows only and evaluated on the test rows; the ROC curve uses the
    forest's share of votes for class 1 as the score.

    Args:
        dataset (TabularDataset): The uploaded rows.
        config (FeatureConfig): Selected features and target. Column kinds not
            declared in `feature_types` are taken from the dataset.
        settings (RfkitSettings | None): Tunable constants; defaults to
            :func:`~rfkit.config.get_settings`.
        rng (np.random.Generator | None): Random source for the train/test
            shuffle and permutation importance. `None` uses a fresh, unseeded
            generator. The forest itself is always seeded with
            `settings.forest_seed`.

    Returns:
        TrainedModel: The immutable trained model.

    Raises:
        ValidationError: If the feature selection is invalid.
        ColumnsNotFoundError: If a selected column does not exist.
        InsufficientSamplesError: If the dataset has fewer than
            `settings.min_training_rows` rows.
        TooFewClassesError: If the target has fewer than two classes.
    """
    settings = settings if settings is not None else get_settings()
    generator = rng if rng is not None else np.random.default_rng()

    log_stage("Preparing data", rows=dataset.height, features=len(config.features))
    resolved_config = resolve_feature_config(config, dataset)

    log_stage("Creating train/test split")
    train_indices, test_indices = train_test_split_indices(
        dataset.height,
        train_fraction=settings.train_fraction,
        minimum=settings.min_training_rows,
        rng=generator,
    )

    labels, target_encoding = encode_target(dataset, resolved_config)
    encodings = fit(dataset, resolved_config)
    prepared = transform(dataset, resolved_config, encodings, target_encoding)
    logger.info(
        "Encoded dataset",
        n_classes=target_encoding.n_classes,
        target_kind=target_encoding.kind,
        train_size=len(train_indices),
        test_size=len(test_indices),
    )

    hyperparameters = select_hyperparameters(dataset.height, len(resolved_config.features))
    log_stage(
        f"Training {hyperparameters.n_estimators} decision trees",
        max_depth=hyperparameters.max_depth,
        min_samples_split=hyperparameters.min_samples_split,
    )
    forest = fit_forest(
        prepared.features[train_indices],
        labels[train_indices],
        hyperparameters,
        seed=settings.forest_seed,
    )

    log_stage("Evaluating model")
    test_features = prepared.features[test_indices]
    test_labels = labels[test_indices]
    metrics = evaluate(
        test_labels,
        forest.predict_matrix(test_features),
        scores=forest.vote_share(test_features, _POSITIVE_CLASS),
        train_size=len(train_indices),
        threshold_steps=settings.roc_threshold_steps,
    )

    log_stage("Calculating feature importance")
    feature_importance = permutation_importance(
        forest.predict_matrix,
        test_features,
        test_labels,
        resolved_config.features,
        n_repeats=settings.importance_repeats,
        rng=generator,
    )

    model = TrainedModel(
        hyperparameters=hyperparameters,
        feature_config=resolved_config,
        encodings=encodings,
        target_encoding=target_encoding,
        forest=forest,
        metrics=metrics,
        feature_importance=feature_importance,
        created_at=datetime.now(UTC),
        dataset_size=dataset.height,
    )
    log_stage("Training complete", accuracy=round(metrics.accuracy, 2), auc=round(metrics.auc, 4))
    return model
