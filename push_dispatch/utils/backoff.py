"""Bounded exponential-backoff retry for provider send attempts."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from push_dispatch.notifications.contracts import is_retryable

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 2
DEFAULT_BASE_DELAY_MS = 250
MAX_JITTER_MS = 150


def backoff_delay_ms(attempt: int, *, base_delay_ms: int = DEFAULT_BASE_DELAY_MS, max_jitter_ms: int = MAX_JITTER_MS) -> float:
  """Return ``base * 2^attempt`` plus up to ``max_jitter_ms`` of random jitter."""
  return base_delay_ms * (2**attempt) + random.uniform(0, max_jitter_ms)


async def retry_with_backoff[T](
  operation: Callable[[int], Awaitable[T]],
  *,
  retries: int = DEFAULT_RETRIES,
  base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
  should_retry: Callable[[BaseException], bool] = is_retryable,
  operation_name: str = "push_send",
) -> T:
  """
  Run ``operation`` up to ``retries + 1`` times.

  The zero-based attempt index is passed to the operation so callers can refresh
  credentials before a retry. Non-retryable errors are raised immediately; the last
  error is re-raised once retries are exhausted.
  """
  attempt = 0
  while True:
    try:
      result = await operation(attempt)
      if attempt > 0:
        logger.info("Operation succeeded after retry: operation=%s, attempt=%d/%d", operation_name, attempt + 1, retries + 1)
      return result

    except Exception as exc:
      if attempt >= retries or not should_retry(exc):
        raise

      delay_ms = backoff_delay_ms(attempt, base_delay_ms=base_delay_ms)
      logger.warning("Operation failed, retrying: operation=%s, attempt=%d/%d, delay_ms=%.0f, error=%s", operation_name, attempt + 1, retries + 1, delay_ms, exc)
      await asyncio.sleep(delay_ms / 1000)
      attempt += 1
