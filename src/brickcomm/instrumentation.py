"""
Performance instrumentation and timing for link operations.

Provides a decorator for timing blocking operations with a configurable
threshold and an on/off toggle.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import ParamSpec, TypeVar

from brickcomm.logging_abstraction import LinkLogger

__all__ = [
    "measure_time",
    "timed",
]

P = ParamSpec("P")
T = TypeVar("T")


def measure_time(start_time: float) -> float:
    """
    Calculate elapsed time in milliseconds.

    Args:
        start_time: Start time from time.perf_counter()

    Returns:
        Elapsed time in milliseconds
    """
    return (time.perf_counter() - start_time) * 1000


def timed(operation_name: str | None = None) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """
    Decorator for timing synchronous functions with threshold warnings.

    Logs execution time and warns if the operation exceeds the configured
    threshold. Disabled unless BRICKCOMM_PERF_TRACKING is set.

    Example:
        @timed("radio_connect")
        def connect(self, identifier):
            ...
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            from brickcomm import const  # noqa: PLC0415
            from brickcomm.logging_abstraction import get_logger  # noqa: PLC0415

            if not const.BRICKCOMM_PERF_TRACKING:
                return func(*args, **kwargs)

            logger = get_logger(__name__)
            op_name = operation_name or func.__name__

            start_time = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = measure_time(start_time)
                _log_timing(logger, op_name, elapsed_ms, const.BRICKCOMM_PERF_THRESHOLD_MS)

        return wrapper

    return decorator


def _log_timing(logger: LinkLogger, operation: str, elapsed_ms: float, threshold_ms: int) -> None:
    context = {"operation": operation, "elapsed_ms": round(elapsed_ms, 2), "threshold_ms": threshold_ms}
    if elapsed_ms > threshold_ms:
        logger.warning("%s took %.1fms (threshold %dms)", operation, elapsed_ms, threshold_ms, extra=context)
    else:
        logger.debug("%s completed in %.1fms", operation, elapsed_ms, extra=context)
