"""Prediction for single rows with a vote-based confidence score."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping

from loguru import logger

from rfkit.forest.models import PredictionResult, RawValue, TrainedModel
from rfkit.forest.preprocessing import transform_row

_NO_VOTE_CONFIDENCE: float = 0.5
_NO_VOTE_CLASS_ID: int = 0


def predict(model: TrainedModel, raw_values: Mapping[str, RawValue]) -> PredictionResult:
    """Predict the class of one row of raw feature values.

    The row is encoded with the model's stored encodings (see
    :func:`~rfkit.forest.preprocessing.transform_row`), then every tree votes.
    The predicted class is the majority vote, ties going to the lowest class
    id, and the confidence is the winning class's share of the successful votes.
    Trees that fail to vote are skipped. If no tree votes, the prediction falls
    back to class 0 with confidence 0.5.

    Args:
        model (TrainedModel): A trained or loaded model.
        raw_values (Mapping[str, RawValue]): Raw value per feature name, as
            typed by the user or read from a file.

    Returns:
        PredictionResult: Class id, decoded label (`"Unknown"` if the id is not
            in the target encoding) and confidence in [0, 1].

    Raises:
        UnseenCategoryError: If a categorical value was not seen during training.
        ValidationError: If a numeric value is missing or not a number.
    """
    sample = transform_row(raw_values, model.feature_config, model.encodings)
    votes = model.forest.votes(sample.tolist())

    if votes:
        class_id = model.forest.winner(votes)
    else:
        logger.warning("No tree could vote; falling back to default prediction", n_trees=len(model.forest.trees))
        class_id = _NO_VOTE_CLASS_ID

    return PredictionResult(
        class_id=class_id,
        label=model.target_encoding.decode(class_id),
        confidence=confidence_from_votes(votes, class_id),
    )


def confidence_from_votes(votes: Counter[int], class_id: int) -> float:
    """Return the share of votes cast for `class_id`, or 0.5 when there are no votes.

    Examples:
        >>> confidence_from_votes(Counter({0: 3, 1: 1}), 0)
        0.75
        >>> confidence_from_votes(Counter(), 1)
        0.5
    """
    total = sum(votes.values())
    if total == 0:
        return _NO_VOTE_CONFIDENCE
    return votes[class_id] / total
