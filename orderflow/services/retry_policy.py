from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

from orderflow.core.config import (
    ACCESS_CHECK_BASE_DELAY_SECONDS,
    ACCESS_CHECK_MAX_ATTEMPTS,
    ACCESS_CHECK_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# attempts that blow their timeout keep running here until the transport gives up
_ATTEMPT_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="retry-attempt")


@dataclass
class RetryOutcome(Generic[T]):
    ok: bool
    value: T | None = None
    attempts: int = 0
    last_error: BaseException | None = None
    timed_out: bool = False


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry: linear backoff (1x, 2x, 3x base) and a per-attempt deadline."""

    max_attempts: int = ACCESS_CHECK_MAX_ATTEMPTS
    base_delay_seconds: float = ACCESS_CHECK_BASE_DELAY_SECONDS
    attempt_timeout_seconds: float = ACCESS_CHECK_TIMEOUT_SECONDS
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def delay_for(self, attempt: int) -> float:
        return max(0.0, self.base_delay_seconds * max(1, attempt))

    def _run_attempt(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        if self.attempt_timeout_seconds is None or self.attempt_timeout_seconds <= 0:
            return fn(*args, **kwargs)
        future = _ATTEMPT_EXECUTOR.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=self.attempt_timeout_seconds)
        except FutureTimeoutError:
            future.cancel()
            raise

    def run(self, fn: Callable[..., T], *args: Any, label: str = "call", **kwargs: Any) -> RetryOutcome[T]:
        attempts = max(1, int(self.max_attempts))
        last_error: BaseException | None = None
        timed_out = False

        for attempt in range(1, attempts + 1):
            try:
                value = self._run_attempt(fn, *args, **kwargs)
                return RetryOutcome(ok=True, value=value, attempts=attempt)
            except FutureTimeoutError as exc:
                last_error = exc
                timed_out = True
                logger.warning(
                    "%s attempt timed out after %.1fs",
                    label,
                    self.attempt_timeout_seconds,
                    extra={"attempt": attempt},
                )
            except Exception as exc:
                last_error = exc
                timed_out = False
                logger.warning("%s attempt failed: %s", label, exc, extra={"attempt": attempt})

            if attempt < attempts:
                self.sleep(self.delay_for(attempt))

        logger.error("%s exhausted %s attempts", label, attempts)
        return RetryOutcome(ok=False, attempts=attempts, last_error=last_error, timed_out=timed_out)
