"""Custom exceptions for rfkit.

Every failure that reaches a user is one of these classes. Catch `RfkitError`
to handle any of them; catch a subclass to react to one category:

Validation exceptions (subclass ValueError):
- ValidationError: Base class for input that fails a precondition before any
  computation runs.
- InsufficientSamplesError: Raised when a dataset has too few rows.
- TooFewClassesError: Raised when a target column has fewer than two classes.
- ColumnsNotFoundError: Raised when requested columns do not exist in a dataset.
- DuplicateColumnsError: Raised when duplicate column names are provided.

Other exceptions:
- ParseError: Raised for malformed or empty CSV input.
- UnseenCategoryError: Raised at prediction time for a category value that was
  not present when the model was trained.
- TransientComputationError: Raised by a single tree walk; caught during
  confidence scoring and never surfaced to callers.
- SerializationError: Raised when a model file is corrupt or incompatible.
"""

from __future__ import annotations


class RfkitError(Exception):
    """Base exception for all rfkit errors."""


class ValidationError(RfkitError, ValueError):
    """Raised when input fails a precondition; the current operation halts before any computation."""


class InsufficientSamplesError(ValidationError):
    """Raised when a dataset has fewer rows than an operation requires.

    Attributes:
        n_samples (int): Number of rows that were provided.
        minimum (int): Minimum number of rows required.

    Examples:
        >>> err = InsufficientSamplesError(n_samples=4, minimum=10)
        >>> str(err)
        'Need at least 10 samples, got 4'
    """

    n_samples: int
    minimum: int

    def __init__(self, n_samples: int, minimum: int) -> None:
        """Initialize InsufficientSamplesError.

        Args:
            n_samples (int): Number of rows that were provided.
            minimum (int): Minimum number of rows required.
        """
        super().__init__(f"Need at least {minimum} samples, got {n_samples}")
        self.n_samples = n_samples
        self.minimum = minimum


class TooFewClassesError(ValidationError):
    """Raised when a target column has fewer than two distinct classes.

    Attributes:
        target (str): Name of the target column.
        n_classes (int): Number of distinct classes found.
    """

    target: str
    n_classes: int

    def __init__(self, target: str, n_classes: int) -> None:
        """Initialize TooFewClassesError.

        Args:
            target (str): Name of the target column.
            n_classes (int): Number of distinct classes found.
        """
        super().__init__(f"Target column '{target}' needs at least 2 distinct classes, found {n_classes}")
        self.target = target
        self.n_classes = n_classes


class ColumnsNotFoundError(ValidationError):
    """Raised when requested columns do not exist in a dataset.

    Attributes:
        missing_columns (list[str]): Column names that were not found.
        available_columns (list[str]): Column names present in the dataset.

    Examples:
        >>> err = ColumnsNotFoundError(
        ...     missing_columns=["x", "y"],
        ...     available_columns=["a", "b", "c"],
        ... )
        >>> err.missing_columns
        ['x', 'y']
    """

    missing_columns: list[str]
    available_columns: list[str]

    def __init__(
        self,
        missing_columns: list[str],
        available_columns: list[str],
    ) -> None:
        """Initialize ColumnsNotFoundError.

        Args:
            missing_columns (list[str]): Column names not found in the dataset.
            available_columns (list[str]): Column names present in the dataset.
        """
        super().__init__(f"Columns not found in dataset: {sorted(missing_columns)}")
        self.missing_columns = missing_columns
        self.available_columns = available_columns


class DuplicateColumnsError(ValidationError):
    """Raised when duplicate column names are provided.

    Attributes:
        columns (list[str]): The column list that contains duplicates.
        duplicate_columns (list[str]): The specific column names that are
            duplicated (each listed once).

    Examples:
        >>> err = DuplicateColumnsError(columns=["a", "a", "b"])
        >>> err.duplicate_columns
        ['a']
    """

    columns: list[str]
    duplicate_columns: list[str]

    def __init__(self, columns: list[str]) -> None:
        """Initialize DuplicateColumnsError.

        Args:
            columns (list[str]): The column list containing duplicates.
        """
        super().__init__("Duplicate column names are not allowed")
        self.columns = columns
        seen: set[str] = set()
        self.duplicate_columns = []
        for col in columns:
            if col in seen and col not in self.duplicate_columns:
                self.duplicate_columns.append(col)
            seen.add(col)


class ParseError(RfkitError, ValueError):
    """Raised when CSV input is empty or malformed; no partial state is committed."""


class UnseenCategoryError(RfkitError, ValueError):
    """Raised when a categorical value was not seen while the model was trained.

    Attributes:
        feature (str): The feature column the value was submitted for.
        value (str): The unseen category value.
        known_values (list[str]): Category values the model can encode, in
            encoding order.

    Examples:
        >>> err = UnseenCategoryError(feature="plan", value="gold", known_values=["basic", "pro"])
        >>> str(err)
        "Unknown category 'gold' for plan"
    """

    feature: str
    value: str
    known_values: list[str]

    def __init__(self, feature: str, value: str, known_values: list[str]) -> None:
        """Initialize UnseenCategoryError.

        Args:
            feature (str): The feature column the value was submitted for.
            value (str): The unseen category value.
            known_values (list[str]): Category values the model can encode.
        """
        super().__init__(f"Unknown category '{value}' for {feature}")
        self.feature = feature
        self.value = value
        self.known_values = known_values

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including feature, value, and known values.
        """
        return (
            f"{self.__class__.__name__}(feature={self.feature!r}, value={self.value!r}, "
            f"known_values={self.known_values!r})"
        )


class TransientComputationError(RfkitError):
    """Raised when a single tree cannot vote on a sample."""


class SerializationError(RfkitError):
    """Raised when a model file cannot be read or does not match the expected format.

    Attributes:
        source (str | None): The file path or other description of the input
            that failed to load.
    """

    source: str | None

    def __init__(self, message: str, source: str | None = None) -> None:
        """Initialize SerializationError.

        Args:
            message (str): Description of the failure.
            source (str | None): The file path or other description of the input.
        """
        super().__init__(message)
        self.source = source

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Detailed string representation including message and source.
        """
        return f"{self.__class__.__name__}(message={str(self)!r}, source={self.source!r})"
