from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
from typing import Awaitable, Callable, TypeVar

from catgov.core.config import get_settings
from catgov.core.errors import StoreUnavailable


logger = logging.getLogger(__name__)

T = TypeVar("T")


def _default_retryable(exc: Exception) -> bool:
    # Only transient store failures are worth another attempt.
    return isinstance(exc, StoreUnavailable)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    backoff_ms: int


def default_read_retry_policy() -> RetryPolicy:
    settings = get_settings()
    return RetryPolicy(
        max_attempts=settings.store_read_retry_max_attempts,
        backoff_ms=settings.store_read_retry_backoff_ms,
    )


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    retryable: Callable[[Exception], bool] | None = None,
) -> T:
    # Retry helper with jittered exponential backoff; intended for read paths only.
    policy = policy or default_read_retry_policy()
    retryable = retryable or _default_retryable
    attempt = 1
    while True:
        try:
            return await func()
        except Exception as exc:  # noqa: BLE001 - non-retryable failures are re-raised below
            if attempt >= max(policy.max_attempts, 1) or not retryable(exc):
                raise
            jitter = random.uniform(0.5, 1.5)
            sleep_s = (policy.backoff_ms / 1000.0) * (2 ** (attempt - 1)) * jitter
            logger.info("store_read_retry attempt=%s sleep_s=%.3f error=%s", attempt, sleep_s, exc)
            await asyncio.sleep(sleep_s)
            attempt += 1
