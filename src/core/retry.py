"""Bounded exponential backoff for transient database conflicts."""
from __future__ import annotations

import logging
import time

from django.conf import settings
from django.db import OperationalError

from core.exceptions import StoreConflict

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (OperationalError, StoreConflict)


def backoff_delay(attempt: int, *, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (0-based)."""
    return min(max_delay, base_delay * (2 ** attempt))


def call_with_retry(func, *args, attempts=None, base_delay=None, max_delay=None, sleep=time.sleep, **kwargs):
    """Call ``func`` and retry it on transient store errors.

    ``func`` must open its own transaction; retrying inside an already
    broken outer transaction would fail again immediately.

    Raises
    ------
    StoreConflict
        When every attempt failed with a transient error.
    ValueError
        If ``attempts`` is below 1.
    """
    attempts = settings.STORE_RETRY_ATTEMPTS if attempts is None else attempts
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}.")
    base_delay = settings.STORE_RETRY_BASE_DELAY if base_delay is None else base_delay
    max_delay = settings.STORE_RETRY_MAX_DELAY if max_delay is None else max_delay

    last_error = None
    for attempt in range(attempts):
        try:
            return func(*args, **kwargs)
        except TRANSIENT_ERRORS as exc:
            last_error = exc
            if attempt + 1 >= attempts:
                break
            delay = backoff_delay(attempt, base_delay=base_delay, max_delay=max_delay)
            logger.warning(
                "Transient store error in %s (attempt %d/%d), retrying in %.3fs: %s",
                getattr(func, "__name__", func),
                attempt + 1,
                attempts,
                delay,
                exc,
            )
            sleep(delay)

    logger.error("Giving up on %s after %d attempts", getattr(func, "__name__", func), attempts)
    raise StoreConflict(f"Store conflict persisted after {attempts} attempts.") from last_error
