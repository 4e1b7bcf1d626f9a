"""Retry helper with exponential backoff."""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple, Type, TypeVar


T = TypeVar("T")


class RetryError(Exception):
    """Raised when retry attempts are exhausted."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.last_error = last_error


def retry(
    func: Callable[[], T],
    retries: int,
    backoff: float,
    exceptions: Tuple[Type[BaseException], ...],
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> T:
    """
    Call func until it succeeds, sleeping backoff, 2*backoff, ... between tries.

    retries counts the extra attempts after the first one, so retries=0 calls
    func exactly once. on_retry(attempt, error, delay) fires before each sleep.
    """
    if retries < 0:
        raise ValueError("retries must be non-negative")
    attempt = 0
    delay = backoff
    while True:
        try:
            return func()
        except exceptions as exc:
            attempt += 1
            if attempt > retries:
                raise RetryError(f"Failed after {retries} retries: {exc}", last_error=exc) from exc
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            time.sleep(delay)
            delay *= 2
