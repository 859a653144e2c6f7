"""rfkit: Random forest training, prediction, and classical statistics for tabular CSV data."""

from loguru import logger

from rfkit.dataset import TabularDataset, load_analysis_dataset, parse_csv, read_csv
from rfkit.forest import FeatureConfig, TrainedModel, predict, train_model
from rfkit.logging import PACKAGE_NAME, enable_logging
from rfkit.persistence import export_model, import_model, load_model, save_model
from rfkit.session import ModelSession

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the rfkit module by default

__all__ = [
    "FeatureConfig",
    "ModelSession",
    "TabularDataset",
    "TrainedModel",
    "enable_logging",
    "export_model",
    "import_model",
    "load_analysis_dataset",
    "load_model",
    "parse_csv",
    "predict",
    "read_csv",
    "save_model",
    "train_model",
]
