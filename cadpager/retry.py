"""Run a callable again, with exponential backoff, while it raises."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

T = TypeVar("T")

_log = logging.getLogger(__name__)

_DEFAULT_RETRIES = 10
_DEFAULT_INITIAL_BACKOFF = 2.0


def with_retries(fn: Callable[[], T]) -> T:
    """Call fn up to 10 times, starting with a 2 second backoff."""
    return with_retries_configurable(_DEFAULT_RETRIES, _DEFAULT_INITIAL_BACKOFF, fn)


def with_retries_configurable(count: int, initial_backoff: float, fn: Callable[[], T]) -> T:
    """Call fn up to count times, doubling the wait (seconds) after each failure.

    Returns fn's result on the first success; raises RuntimeError chained to
    the last failure once every attempt has failed.
    """
    backoff = initial_backoff
    last_error: Exception | None = None
    for attempt in range(count):
        if attempt > 0:
            _log.warning("Retry %d: %s", attempt, last_error)
            time.sleep(backoff)
            backoff *= 2
        try:
            return fn()
        except Exception as exc:  # noqa: BLE001 - any failure triggers a retry
            last_error = exc
    raise RuntimeError(f"failed after {count} retries: {last_error}") from last_error