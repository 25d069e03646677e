"""Bounded async retry for the HTTP client.

The step loop never retries; a failed send is fatal there. Retries live only
at the transport boundary, driven by explicit provider signals.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
import time
from typing import TYPE_CHECKING, TypeVar

import httpx

from castor._http import RETRYABLE_STATUS_CODES
from castor.errors import TransportError, _walk_exception_chain

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with optional full jitter."""

    max_attempts: int = 2
    initial_delay_s: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay_s: float = 5.0
    jitter: bool = True
    max_elapsed_s: float | None = 15.0

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy.max_attempts must be >= 1")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("RetryPolicy.backoff_multiplier must be > 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0")
        if self.max_elapsed_s is not None and self.max_elapsed_s < 0:
            raise ValueError("RetryPolicy.max_elapsed_s must be >= 0 or None")

    def delay_for(self, retry_index: int) -> float:
        """Sleep before retry number *retry_index* (1-based)."""
        base = self.initial_delay_s * (self.backoff_multiplier ** max(0, retry_index - 1))
        base = min(self.max_delay_s, base)
        if base <= 0:
            return 0.0
        if not self.jitter:
            return base
        return random.random() * base  # noqa: S311


def _is_transient_network_error(exc: BaseException) -> bool:
    for e in _walk_exception_chain(exc):
        if isinstance(e, (TimeoutError, httpx.TimeoutException, httpx.TransportError)):
            return True
    return False


def should_retry_send(exc: BaseException) -> bool:
    """Return True when a plain request (``responses``) may be resent.

    Cancellation is never retried. ``TransportError`` is retried only when
    marked retryable or carrying a known retryable status code.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, TransportError):
        return exc.retryable is True or exc.status_code in RETRYABLE_STATUS_CODES
    return _is_transient_network_error(exc)


def should_retry_side_effect(exc: BaseException) -> bool:
    """Return True when a state-changing request may be resent.

    Creating a conversation twice leaves an orphan on the provider, and
    resending into a conversation appends the same items twice. Only explicit
    provider signals (status code or Retry-After) qualify.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, TransportError):
        if exc.retry_after_s is not None:
            return True
        return exc.status_code in RETRYABLE_STATUS_CODES
    return False


async def retry_async(
    factory: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    should_retry: Callable[[BaseException], bool] = should_retry_send,
) -> T:
    """Run an async factory with bounded retries."""
    start = time.monotonic()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await factory()
        except Exception as exc:
            if not should_retry(exc) or attempt >= policy.max_attempts:
                raise

            delay = policy.delay_for(attempt)
            if isinstance(exc, TransportError) and exc.retry_after_s is not None:
                delay = max(delay, exc.retry_after_s)
            if policy.max_elapsed_s is not None:
                remaining = policy.max_elapsed_s - (time.monotonic() - start)
                if remaining <= 0:
                    raise
                delay = min(delay, remaining)

            logger.debug(
                "Retrying after %s (attempt %d/%d, sleeping %.2fs)",
                type(exc).__name__,
                attempt,
                policy.max_attempts,
                delay,
            )
            if delay > 0:
                await asyncio.sleep(delay)
