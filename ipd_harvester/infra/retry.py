"""Bounded retry-with-delay shared by network fetches and lock acquisition."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

import structlog

from ..config import RetryConfig
from ..errors import RetryExhaustedError

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Call an operation until it succeeds or ``max_attempts`` is reached.

    The pause before attempt ``n + 1`` is ``delay * backoff ** (n - 1)``,
    capped by ``max_delay``. With the default ``backoff`` of 1 the delay is
    fixed, which is what both call sites in the pipeline use.
    """

    max_attempts: int = 3
    delay: float = 2.0
    backoff: float = 1.0
    max_delay: float | None = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    logger: structlog.BoundLogger | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.logger is None:
            self.logger = structlog.get_logger("ipd_harvester.retry")

    @classmethod
    def from_config(cls, config: RetryConfig, **overrides) -> "RetryPolicy":
        return cls(
            max_attempts=config.max_attempts,
            delay=config.delay,
            backoff=config.backoff,
            **overrides,
        )

    def delay_for(self, attempt: int) -> float:
        pause = self.delay * (self.backoff ** max(0, attempt - 1))
        if self.max_delay is not None:
            pause = min(pause, self.max_delay)
        return pause

    def run(
        self,
        operation: Callable[[int], T],
        *,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        describe: str = "operation",
    ) -> T:
        """Invoke ``operation(attempt)`` and return its first successful result.

        Exceptions outside ``retry_on`` propagate immediately. When every
        attempt fails, :class:`RetryExhaustedError` is raised from the last
        error.
        """

        last_error: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation(attempt)
            except retry_on as exc:
                last_error = exc
                if attempt >= self.max_attempts:
                    break
                pause = self.delay_for(attempt)
                self.logger.warning(
                    "retrying",
                    operation=describe,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay=pause,
                    error=str(exc),
                )
                if pause > 0:
                    self.sleep(pause)
        raise RetryExhaustedError(describe, self.max_attempts) from last_error


__all__ = ["RetryPolicy"]
