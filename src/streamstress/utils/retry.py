# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/streamstress/utils/retry.py
import time
import functools
from dataclasses import dataclass
from typing import Callable, Iterator


class RetryError(RuntimeError):
    pass


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Exponential backoff: the first delay is *initial*, each following one is
    multiplied by *factor* and clamped to *cap*. At most *max_attempts* tries.
    """

    initial: float
    cap: float
    max_attempts: int
    factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial < 0 or self.cap < 0:
            raise ValueError("delays must be non-negative")

    def delays(self) -> Iterator[float]:
        """Sleeps taken between attempts: max_attempts - 1 values."""
        delay = min(self.initial, self.cap)
        for _ in range(self.max_attempts - 1):
            yield delay
            delay = min(delay * self.factor, self.cap)


def retry(
    *,
    policy: BackoffPolicy,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[int, Exception, float], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
):
    """
    Retry decorator for idempotent operations.

    policy: attempt count and delay schedule
    retry_on: exception types to retry
    on_retry: callback(attempt, exception, next_delay)
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            delays = policy.delays()
            last_exc = None
            for attempt in range(1, policy.max_attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except retry_on as exc:
                    last_exc = exc
                    if attempt == policy.max_attempts:
                        break
                    delay = next(delays)
                    if on_retry:
                        on_retry(attempt, exc, delay)
                    sleep(delay)
            raise RetryError(
                f"{fn.__name__} failed after {policy.max_attempts} attempts: {last_exc}"
            ) from last_exc
        return wrapper
    return decorator
