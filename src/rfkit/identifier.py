"""Module for generating and validating unique model version identifiers."""

from __future__ import annotations

import re
from typing import Annotated
from uuid import uuid4

from pydantic import AfterValidator, Field

VERSION_ID_PATTERN = re.compile(r"^mv_[0-9a-f]{8}$")


def generate_version_id() -> str:
    """Generate a unique identifier for a model version.

    Returns:
        str: A unique identifier in the format 'mv_<8 hex chars>'.
    """
    return f"mv_{uuid4().hex[:8]}"


def validate_version_id(value: str) -> str:
    """Validate that a version ID follows the pattern mv_<8 hex chars>.

    Args:
        value (str): The string to validate as a version ID.

    Returns:
        str: The validated version ID if valid.

    Raises:
        ValueError: If the value doesn't match pattern 'mv_<8 hex chars>'.
    """
    if not VERSION_ID_PATTERN.match(value):
        msg = f"Model version ID must match pattern 'mv_<8 hex chars>', got: {value}"
        raise ValueError(msg)
    return value


def version_label(index: int) -> str:
    """Return the display label of the `index`-th version, counting from 0.

    Labels start at "v1.0" and grow by 0.1 per version.

    Examples:
        >>> [version_label(i) for i in (0, 1, 10)]
        ['v1.0', 'v1.1', 'v2.0']
    """
    major, minor = divmod(10 + index, 10)
    return f"v{major}.{minor}"


VersionId = Annotated[
    str,
    AfterValidator(validate_version_id),
    Field(
        description="Unique model version identifier in the format mv_<8 hex chars>.",
        examples=["mv_1a2b3c4d", "mv_abcd1234"],
    ),
]
