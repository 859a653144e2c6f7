"""Logging utilities for rfkit.

This module provides a custom PIPELINE log level, emitted once per training
pipeline stage, and a handle for enabling/disabling rfkit logging with loguru.

Note:
    Importing this module removes loguru's default stderr handler (ID 0) to
    prevent duplicate output when ``enable_logging()`` adds its own handler.
    If your application configures loguru handlers *before* importing rfkit,
    handler 0 may no longer be the default; in that case the removal is a
    no-op (the ``ValueError`` is suppressed). Configure loguru handlers *after*
    importing rfkit, or re-add a stderr handler explicitly if needed.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from typing import TYPE_CHECKING, ClassVar, Final, Literal, TypeAlias

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

with contextlib.suppress(ValueError):
    logger.remove(0)

# Register custom PIPELINE level (between INFO=20 and WARNING=30)
PIPELINE_LEVEL: Final[str] = "PIPELINE"
PIPELINE_LEVEL_NUMBER: Final[int] = 25


def _register_pipeline_level() -> None:
    """Register the PIPELINE custom log level with loguru.

    If the level already exists with a different numeric value, emits a
    UserWarning because loguru does not permit changing the numeric value of an
    existing level.
    """
    try:
        existing_level = logger.level(PIPELINE_LEVEL)
    except ValueError:
        logger.level(PIPELINE_LEVEL, no=PIPELINE_LEVEL_NUMBER, icon="🌲")
    else:
        if existing_level.no != PIPELINE_LEVEL_NUMBER:
            msg = (
                f"PIPELINE level already registered with numeric value {existing_level.no},"
                f" expected {PIPELINE_LEVEL_NUMBER}"
            )
            warnings.warn(msg, stacklevel=2)


_register_pipeline_level()

LogLevel: TypeAlias = Literal[
    "TRACE",
    "DEBUG",
    "INFO",
    "PIPELINE",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

LogFormat: TypeAlias = Literal["short", "full"]


def log_stage(stage: str, **context: object) -> None:
    """Log the start of a training pipeline stage at the PIPELINE level.

    Args:
        stage (str): Human-readable stage description, e.g. `"Preparing data"`.
        **context (object): Structured values attached to the record's `extra`.
    """
    logger.opt(depth=1).log(PIPELINE_LEVEL, stage, **context)


class LoggingHandle:
    """Handle for managing rfkit logging lifecycle.

    Stores the handler ID from logger.add() and provides cleanup via disable()
    or automatically through the context manager protocol.

    Examples:
        >>> with enable_logging():  # doctest: +SKIP
        ...     session.train(dataset, config)

        >>> handle = enable_logging(level="DEBUG")  # doctest: +SKIP
        >>> handle.disable()  # doctest: +SKIP
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        """Initialize the logging handle.

        Args:
            handler_id (int): The loguru handler ID from logger.add().
        """
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove the handler associated with this logging handle.

        When this is the last active handle, ``logger.disable("rfkit")`` is
        called to suppress rfkit log messages again.
        """
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        """Enter context manager.

        Returns:
            LoggingHandle: This handle instance.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager and disable logging."""
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return the number of currently active logging handles.

        Returns:
            int: Count of active handles that have not been disabled.
        """
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel = PIPELINE_LEVEL,
    log_format: LogFormat = "short",
) -> LoggingHandle:
    """Enable rfkit logging on stderr.

    Each call returns an independent handle that manages its own handler; use
    the handle's disable() method or context manager protocol to clean up.

    Args:
        level (LogLevel): Minimum log level to display. Defaults to "PIPELINE",
            which surfaces one line per training stage. Lower to "DEBUG" to see
            per-tree vote failures and intermediate statistics.
        log_format (LogFormat): "short" shows the function name only; "full"
            shows module:function:line.

    Returns:
        LoggingHandle: Independent handle for managing the logging handler.
    """
    logger.enable(PACKAGE_NAME)

    if log_format == "short":
        format_str = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
            "<cyan>{function}</cyan> - "
            "<level>{message}</level>"
        )
    else:
        format_str = (
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )

    handler_id = logger.add(
        sys.stderr,
        level=level,
        filter=_is_rfkit_record,
        format=format_str,
    )

    return LoggingHandle(handler_id)


def _is_rfkit_record(record: Record) -> bool:
    """Pass only records emitted from inside the rfkit package.

    Args:
        record (Record): The loguru Record object to filter.

    Returns:
        bool: True if the record is from the rfkit package, False otherwise.
    """
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
