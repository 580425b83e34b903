"""Retry loop with exponential backoff and an injectable sleep."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

import structlog

from ..errors import TransientLookupError

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Run a callable up to ``max_attempts`` times.

    Only exceptions listed in ``retry_on`` trigger another attempt; anything
    else propagates immediately. Between attempt ``n`` and ``n + 1`` the
    policy sleeps ``base ** n`` seconds. When the budget is spent the last
    transient error is re-raised.
    """

    max_attempts: int = 3
    base: float = 2.0
    retry_on: tuple[type[BaseException], ...] = (TransientLookupError,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    logger: structlog.BoundLogger | None = field(default=None, repr=False)

    def delay_for(self, attempt: int) -> float:
        return float(self.base**attempt)

    def call(self, func: Callable[[], T], *, label: str = "") -> T:
        attempts = max(self.max_attempts, 1)
        attempt = 1
        while True:
            try:
                return func()
            except self.retry_on as exc:
                if attempt >= attempts:
                    raise
                delay = self.delay_for(attempt)
                if self.logger is not None:
                    self.logger.warning(
                        "lookup_retry",
                        target=label,
                        attempt=attempt,
                        max_attempts=attempts,
                        delay_seconds=delay,
                        error=str(exc),
                    )
                self.sleep(delay)
                attempt += 1


__all__ = ["RetryPolicy"]
