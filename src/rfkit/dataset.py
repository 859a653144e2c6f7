"""Tabular dataset container, CSV parsing, and column type detection."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Literal, TypeAlias

import numpy as np
import polars as pl
from loguru import logger

from rfkit.config import get_settings
from rfkit.exceptions import (
    ColumnsNotFoundError,
    DuplicateColumnsError,
    InsufficientSamplesError,
    ParseError,
)


ColumnKind: TypeAlias = Literal["numeric", "categorical"]

RawValue: TypeAlias = float | int | str | None

TypeDetection: TypeAlias = Literal["first_row", "majority"]

_MAJORITY_NUMERIC_RATIO: float = 0.8


class TabularDataset:
    """Parsed rows plus the numeric/categorical kind of every column.

    Numeric columns are stored as `Float64` (unparseable cells become null);
    categorical columns are stored as `String`. The cells as they were parsed
    are kept alongside and returned by :meth:`raw_column`, so a column can be
    read as categories even when it was typed numeric.

    Examples:
        >>> dataset = TabularDataset.from_rows([
        ...     {"age": 31, "plan": "basic"},
        ...     {"age": 45, "plan": "pro"},
        ... ])
        >>> dataset.column_types
        {'age': 'numeric', 'plan': 'categorical'}
        >>> len(dataset)
        2
    """

    def __init__(self, frame: pl.DataFrame, column_types: Mapping[str, ColumnKind] | None = None) -> None:
        """Initialize the dataset.

        Args:
            frame (pl.DataFrame): The rows. Numeric columns are cast to Float64.
            column_types (Mapping[str, ColumnKind] | None): Kind per column.
                Columns without an entry are detected from the first row.
        """
        detected = detect_column_types(frame, strategy="first_row")
        self._column_types: dict[str, ColumnKind] = {
            col: (column_types or {}).get(col, detected[col]) for col in frame.columns
        }
        self._raw = frame
        self._frame = _apply_column_types(frame, self._column_types)

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Mapping[str, RawValue]],
        column_types: Mapping[str, ColumnKind] | None = None,
    ) -> TabularDataset:
        """Build a dataset from a sequence of row mappings.

        Column order follows first appearance across rows. A column holding only
        numbers (or missing values) keeps numeric values; any other column is
        stored as text.

        Args:
            rows (Sequence[Mapping[str, RawValue]]): Row mappings.
            column_types (Mapping[str, ColumnKind] | None): Optional explicit kinds.

        Returns:
            TabularDataset: The new dataset.
        """
        columns: dict[str, None] = {}
        for row in rows:
            columns.update(dict.fromkeys(row))
        series = [_series_from_values(col, [row.get(col) for row in rows]) for col in columns]
        return cls(pl.DataFrame(series), column_types)

    def __len__(self) -> int:
        """Return the number of rows."""
        return self._frame.height

    def __repr__(self) -> str:
        """Return repr(self)."""
        return f"TabularDataset(rows={self.height}, columns={self.columns})"

    @property
    def frame(self) -> pl.DataFrame:
        """pl.DataFrame: The underlying typed frame."""
        return self._frame

    @property
    def columns(self) -> list[str]:
        """list[str]: Column names in file order."""
        return self._frame.columns

    @property
    def column_types(self) -> dict[str, ColumnKind]:
        """dict[str, ColumnKind]: Kind of every column."""
        return dict(self._column_types)

    @property
    def height(self) -> int:
        """int: Number of rows."""
        return self._frame.height

    @property
    def rows(self) -> list[dict[str, RawValue]]:
        """list[dict[str, RawValue]]: Rows as mappings from column name to value."""
        return self._frame.to_dicts()

    def column(self, name: str) -> pl.Series:
        """Return one column.

        Raises:
            ColumnsNotFoundError: If `name` is not a column of this dataset.
        """
        validate_columns([name], self.columns)
        return self._frame[name]

    def raw_column(self, name: str) -> pl.Series:
        """Return one column as it was parsed, before numeric casting.

        For CSV input this is the trimmed cell text, so `"02134"` and `"x"`
        survive in a column whose first row looked numeric.

        Raises:
            ColumnsNotFoundError: If `name` is not a column of this dataset.
        """
        validate_columns([name], self.columns)
        return self._raw[name]

    def take(self, indices: Sequence[int] | np.ndarray) -> TabularDataset:
        """Return a new dataset holding the rows at `indices`, in that order."""
        return TabularDataset(self._raw[list(map(int, indices))], self._column_types)


def parse_csv(text: str, *, strategy: TypeDetection = "first_row") -> TabularDataset:
    """Parse CSV text with a header row into a dataset.

    Cells are read as text, trimmed, and typed afterwards. Fully empty rows are
    dropped.

    Column kinds are detected with `strategy`:

    - `"first_row"`: a column is numeric when its first row's value parses as a
      number. This inspects a single row only; a column whose first value is
      numeric but later values are text is still numeric (text cells become
      missing values in :attr:`TabularDataset.frame`; :meth:`TabularDataset.raw_column`
      keeps them).
    - `"majority"`: a column is numeric when more than 80% of its cells parse as
      finite numbers.

    Args:
        text (str): CSV content.
        strategy (TypeDetection): Column kind detection heuristic.

    Returns:
        TabularDataset: The parsed dataset.

    Raises:
        ParseError: If the text is empty, has no data rows, or is not valid CSV.
    """
    if not text.strip():
        raise ParseError("File is empty")
    try:
        frame = pl.read_csv(text.encode("utf-8"), infer_schema=False)
    except (pl.exceptions.PolarsError, UnicodeError) as exc:
        raise ParseError(f"Parse error: {exc}") from exc

    if frame.width > 0:
        frame = frame.with_columns(pl.all().str.strip_chars())
        frame = frame.filter(~pl.all_horizontal(pl.all().fill_null("") == ""))
    if frame.height == 0:
        raise ParseError("File is empty")

    column_types = detect_column_types(frame, strategy=strategy)
    logger.info("Parsed CSV", rows=frame.height, columns=frame.width, strategy=strategy)
    return TabularDataset(frame, column_types)


def read_csv(path: str | Path, *, strategy: TypeDetection = "first_row") -> TabularDataset:
    """Read and parse a CSV file; see :func:`parse_csv`.

    Raises:
        ParseError: If the file cannot be read or parsed.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(f"Could not read '{path}': {exc}") from exc
    return parse_csv(text, strategy=strategy)


def load_analysis_dataset(text: str, *, min_rows: int | None = None) -> TabularDataset:
    """Parse CSV text for the statistics workflow.

    Uses majority-vote column detection and requires a minimum number of rows.

    Args:
        text (str): CSV content.
        min_rows (int | None): Minimum rows; defaults to the configured
            `min_analysis_rows` (3).

    Returns:
        TabularDataset: The parsed dataset.

    Raises:
        ParseError: If the text is not valid CSV.
        InsufficientSamplesError: If there are fewer than `min_rows` rows.
    """
    minimum = min_rows if min_rows is not None else get_settings().min_analysis_rows
    dataset = parse_csv(text, strategy="majority")
    if dataset.height < minimum:
        raise InsufficientSamplesError(n_samples=dataset.height, minimum=minimum)
    return dataset


def detect_column_types(frame: pl.DataFrame, *, strategy: TypeDetection = "first_row") -> dict[str, ColumnKind]:
    """Classify every column of `frame` as numeric or categorical.

    Args:
        frame (pl.DataFrame): Frame with text or numeric columns.
        strategy (TypeDetection): `"first_row"` or `"majority"`; see :func:`parse_csv`.

    Returns:
        dict[str, ColumnKind]: Kind per column.
    """
    column_types: dict[str, ColumnKind] = {}
    for col in frame.columns:
        series = frame[col]
        if series.dtype.is_numeric():
            column_types[col] = "numeric"
        elif strategy == "first_row":
            first_value = series[0] if series.len() > 0 else None
            column_types[col] = "numeric" if _parses_as_number(first_value) else "categorical"
        else:
            column_types[col] = "numeric" if _numeric_ratio(series) > _MAJORITY_NUMERIC_RATIO else "categorical"
    return column_types


def format_category(value: RawValue, *, missing: str | None = None) -> str:
    """Render a cell as a category label.

    Missing values (None, empty text, NaN) become the `missing` sentinel
    (default: the configured `unknown_category`). Integral floats render
    without a decimal part, so `1.0` and `1` map to the same label `"1"`.

    Args:
        value (RawValue): The cell value.
        missing (str | None): Sentinel for missing values.

    Returns:
        str: The category label.
    """
    sentinel = missing if missing is not None else get_settings().unknown_category
    if value is None:
        return sentinel
    if isinstance(value, float):
        if math.isnan(value):
            return sentinel
        if value.is_integer():
            return str(int(value))
        return repr(value)
    text = str(value)
    return text if text != "" else sentinel


def validate_columns(columns: Sequence[str], available_columns: Sequence[str]) -> None:
    """Validate that columns exist and contain no duplicates.

    Args:
        columns (Sequence[str]): Column names to validate.
        available_columns (Sequence[str]): Column names present in the dataset.

    Raises:
        DuplicateColumnsError: If `columns` contains duplicates.
        ColumnsNotFoundError: If any column does not exist.
    """
    if len(columns) != len(set(columns)):
        raise DuplicateColumnsError(columns=list(columns))
    missing = [col for col in columns if col not in available_columns]
    if missing:
        raise ColumnsNotFoundError(missing_columns=missing, available_columns=list(available_columns))


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _parses_as_number(value: RawValue) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    try:
        return math.isfinite(float(value))
    except ValueError:
        return False


def _numeric_ratio(series: pl.Series) -> float:
    if series.len() == 0:
        return 0.0
    numeric = series.cast(pl.Float64, strict=False)
    finite_count = numeric.drop_nulls().is_finite().sum()
    return finite_count / series.len()


def _apply_column_types(frame: pl.DataFrame, column_types: Mapping[str, ColumnKind]) -> pl.DataFrame:
    expressions = []
    for col in frame.columns:
        dtype = frame[col].dtype
        if column_types[col] == "numeric" and dtype != pl.Float64:
            expressions.append(pl.col(col).cast(pl.Float64, strict=False))
        elif column_types[col] == "categorical" and dtype != pl.String:
            expressions.append(
                pl.col(col).map_elements(lambda v: format_category(v, missing=""), return_dtype=pl.String)
            )
    return frame.with_columns(expressions) if expressions else frame


def _series_from_values(name: str, values: list[RawValue]) -> pl.Series:
    if all(v is None or (isinstance(v, (int, float)) and not isinstance(v, bool)) for v in values):
        return pl.Series(name, [None if v is None else float(v) for v in values], dtype=pl.Float64)
    return pl.Series(name, [None if v is None else str(v) for v in values], dtype=pl.String)
