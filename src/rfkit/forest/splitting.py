"""Random train/test partition of row indices."""

from __future__ import annotations

import math

import numpy as np

from rfkit.exceptions import InsufficientSamplesError

_DEFAULT_TRAIN_FRACTION: float = 0.8
_DEFAULT_MIN_ROWS: int = 10


def train_test_split_indices(
    n_rows: int,
    *,
    train_fraction: float = _DEFAULT_TRAIN_FRACTION,
    minimum: int = _DEFAULT_MIN_ROWS,
    rng: np.random.Generator | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Shuffle row indices and cut them into a training and a test segment.

    The shuffle is `Generator.permutation` (a Fisher-Yates shuffle) over
    `[0, n_rows)`; the first `floor(n_rows * train_fraction)` shuffled indices
    form the training set and the rest form the test set. The split is not
    stratified by class.

    Args:
        n_rows (int): Number of rows to partition.
        train_fraction (float): Share of rows assigned to the training set.
        minimum (int): Minimum number of rows required.
        rng (np.random.Generator | None): Random source. `None` uses a fresh,
            unseeded generator, so repeated calls give different splits.

    Returns:
        tuple[np.ndarray, np.ndarray]: `(train_indices, test_indices)` as int64
            arrays; together they hold every index exactly once.

    Raises:
        InsufficientSamplesError: If `n_rows` is below `minimum`.
    """
    if n_rows < minimum:
        raise InsufficientSamplesError(n_samples=n_rows, minimum=minimum)

    generator = rng if rng is not None else np.random.default_rng()
    indices = generator.permutation(n_rows).astype(np.int64)

    cut = math.floor(n_rows * train_fraction)
    return indices[:cut], indices[cut:]
