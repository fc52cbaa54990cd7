"""Retry wrapper for write transactions that lost a race."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from core.config import Settings, get_settings
from core.errors import TransactionConflictError

T = TypeVar("T")

logger = logging.getLogger(__name__)


def run_with_retry(func: Callable[[], T], *, settings: Settings | None = None) -> T:
    """Run ``func`` and re-run it from scratch on :class:`TransactionConflictError`.

    ``func`` must perform its own reads so every attempt starts from fresh state.
    """
    resolved = settings or get_settings()
    retrying = Retrying(
        retry=retry_if_exception_type(TransactionConflictError),
        stop=stop_after_attempt(resolved.transaction_max_attempts),
        wait=wait_random_exponential(multiplier=0.05, max=resolved.transaction_retry_max_wait),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    return retrying(func)


__all__ = ["run_with_retry"]
