"""Runtime settings for rfkit, loaded from the environment or a `.env` file."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RfkitSettings(BaseSettings):
    """Tunable constants for training, prediction, and analysis.

    Every field can be overridden with an `RFKIT_`-prefixed environment
    variable, e.g. `RFKIT_TRAIN_FRACTION=0.75`.

    Attributes:
        train_fraction (float): Share of shuffled rows assigned to the training set.
        forest_seed (int): Seed for the forest's bootstrap sampling.
        min_training_rows (int): Minimum rows required to train a model.
        min_analysis_rows (int): Minimum rows required by the analysis upload.
        prediction_history_limit (int): Number of predictions kept per session.
        importance_repeats (int): Permutation trials averaged per feature.
        roc_threshold_steps (int): Number of evenly spaced ROC thresholds in [0, 1].
        unknown_category (str): Sentinel used for missing categorical values.
    """

    model_config = SettingsConfigDict(env_prefix="RFKIT_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    train_fraction: float = Field(default=0.8, gt=0.0, lt=1.0, description="Share of rows used for training.")
    forest_seed: int = Field(default=42, description="Seed for the forest's bootstrap sampling.")
    min_training_rows: int = Field(default=10, ge=2, description="Minimum rows required to train a model.")
    min_analysis_rows: int = Field(default=3, ge=1, description="Minimum rows required by the analysis upload.")
    prediction_history_limit: int = Field(default=10, ge=1, description="Number of predictions kept per session.")
    importance_repeats: int = Field(default=1, ge=1, description="Permutation trials averaged per feature.")
    roc_threshold_steps: int = Field(default=21, ge=2, description="Number of ROC thresholds in [0, 1].")
    unknown_category: str = Field(default="unknown", min_length=1, description="Sentinel for missing categories.")


@lru_cache(maxsize=1)
def get_settings() -> RfkitSettings:
    """Return the process-wide settings, loading them on first use.

    Returns:
        RfkitSettings: The cached settings instance.
    """
    return RfkitSettings()
