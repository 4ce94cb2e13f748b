"""Bounded retry with exponential backoff and a per-attempt deadline."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 3  # attempts after the first one
    timeout_s: float = 30.0  # hard deadline per attempt
    base_delay_s: float = 0.5
    max_delay_s: float = 10.0

    def backoff(self, attempt: int) -> float:
        """Delay before attempt `attempt + 1` (1-based `attempt` that just failed)."""
        return min(self.max_delay_s, self.base_delay_s * (2 ** (attempt - 1)))


@dataclass(kw_only=True)
class RetryOutcome(Generic[T]):
    value: T | None
    error: str | None
    attempts: int

    @property
    def ok(self) -> bool:
        return self.error is None


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str,
) -> RetryOutcome[T]:
    """Await `fn()` until it succeeds or the policy is exhausted.

    Never raises for ordinary exceptions; the last error message is returned in
    the outcome. Cancellation propagates.
    """
    tries = 0
    err: str | None = None
    while True:
        tries += 1
        try:
            value = await asyncio.wait_for(fn(), timeout=policy.timeout_s)
            return RetryOutcome(value=value, error=None, attempts=tries)
        except asyncio.TimeoutError:
            err = f"timed out after {policy.timeout_s:g}s"
        except Exception as e:
            err = f"{type(e).__name__}: {e}"

        if tries > policy.retries:
            logger.warning("%s failed after %d attempt(s): %s", label, tries, err)
            return RetryOutcome(value=None, error=err, attempts=tries)

        delay = policy.backoff(tries)
        logger.info("%s attempt %d failed (%s); retrying in %.2fs", label, tries, err, delay)
        await asyncio.sleep(delay)
