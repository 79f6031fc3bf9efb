from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field, replace
from typing import Awaitable, Callable, TypeVar

from .errors import RetryExhaustedError, is_transient

T = TypeVar("T")

RetryCallback = Callable[[int, int, BaseException], None]
RetryPredicate = Callable[[BaseException], bool]
SleepFunc = Callable[[float], Awaitable[None]]

logger = logging.getLogger(__name__)


def _always(_: BaseException) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int | None = 8000
    timeout_ms: int | None = 20000
    should_retry: RetryPredicate = field(default=_always)
    jitter: float = 0.0


class RetryPolicy:
    """Bounded retry executor with exponential backoff."""

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: SleepFunc | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._config = config or DEFAULT_RETRY
        if self._config.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

    @property
    def config(self) -> RetryConfig:
        return self._config

    def compute_delay(self, attempt: int) -> int:
        """Delay in milliseconds before the retry that follows *attempt*."""

        delay = float(self._config.base_delay_ms) * (2 ** (attempt - 1))
        if self._config.jitter:
            delay += delay * self._config.jitter * (random.random() * 2 - 1)
        if self._config.max_delay_ms is not None:
            delay = min(delay, float(self._config.max_delay_ms))
        return max(0, int(delay))

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        on_retry: RetryCallback | None = None,
    ) -> T:
        started = self._clock()
        last_error: BaseException | None = None
        for attempt in range(1, self._config.max_attempts + 1):
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                last_error = exc
                if not self._config.should_retry(exc):
                    raise
                if attempt >= self._config.max_attempts:
                    break
                delay = self.compute_delay(attempt)
                if self._deadline_passed(started, delay):
                    raise RetryExhaustedError(
                        attempt,
                        exc,
                        f"Retry timeout of {self._config.timeout_ms}ms exceeded after {attempt} attempts",
                    ) from exc
                if on_retry is not None:
                    on_retry(attempt, delay, exc)
                logger.debug(
                    "Retry attempt %d/%d after %dms: %s",
                    attempt,
                    self._config.max_attempts,
                    delay,
                    exc,
                )
                await self._sleep(delay / 1000)
        raise RetryExhaustedError(self._config.max_attempts, last_error) from last_error

    def _deadline_passed(self, started: float, delay_ms: int) -> bool:
        if self._config.timeout_ms is None:
            return False
        elapsed_ms = (self._clock() - started) * 1000
        return elapsed_ms + delay_ms > self._config.timeout_ms

    def with_config(self, **overrides: object) -> "RetryPolicy":
        return RetryPolicy(replace(self._config, **overrides), sleep=self._sleep, clock=self._clock)


NETWORK_RETRY = RetryConfig(
    max_attempts=5,
    base_delay_ms=2000,
    max_delay_ms=16000,
    timeout_ms=60000,
    should_retry=is_transient,
    jitter=0.3,
)

STORAGE_RETRY = RetryConfig(
    max_attempts=3,
    base_delay_ms=200,
    max_delay_ms=1000,
    timeout_ms=5000,
)

DEFAULT_RETRY = RetryConfig()


__all__ = [
    "DEFAULT_RETRY",
    "NETWORK_RETRY",
    "RetryCallback",
    "RetryConfig",
    "RetryPolicy",
    "RetryPredicate",
    "STORAGE_RETRY",
]
