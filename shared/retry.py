"""
Retry mechanism for resilient control-plane calls.

Only transport-level failures are retried. A received HTTP response, whatever
its status, is final: mutating admin calls are not safely repeatable and the
control plane answers deterministically for the same input.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar, TYPE_CHECKING

import httpx

from shared.errors import DeadlineExceededError, TransientNetworkError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


T = TypeVar("T")

# Connection refused/reset, DNS failures, read/write errors and timeouts.
TRANSIENT_EXCEPTIONS = (httpx.TimeoutException, httpx.NetworkError)


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 0.1,
                 max_delay: float = 5.0,
                 exponential_base: float = 2.0,
                 jitter: bool = True):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter


def is_transient(exc: BaseException) -> bool:
    """Return True if the failure happened before any response was received."""
    return isinstance(exc, TRANSIENT_EXCEPTIONS)


def deadline_in(seconds: float) -> float:
    """Absolute deadline, in event loop time, ``seconds`` from now."""
    return asyncio.get_running_loop().time() + seconds


def _calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay after a failed ``attempt`` (1-based)."""
    delay = config.base_delay * (config.exponential_base ** (attempt - 1))

    # Apply max delay cap
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_amount = delay * 0.1  # 10% jitter
        delay += random.uniform(-jitter_amount, jitter_amount)

    return max(0.0, delay)


class RetryPolicy:
    """Executes an awaitable factory with bounded exponential backoff."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        name: str = "default",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config or RetryConfig()
        self.name = name
        self.metrics = metrics
        self.logger = get_logger(f"retry.{name}")
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        deadline: Optional[float] = None,
        label: Optional[str] = None,
    ) -> T:
        """Run ``operation`` until it succeeds, fails terminally, or attempts run out.

        ``deadline`` is an absolute event loop time. It is checked before each
        attempt and bounds the attempt itself; a backoff that would outlast it
        fails at once instead of sleeping. Task cancellation propagates as
        ``asyncio.CancelledError`` from wherever the task is suspended.
        """
        label = label or self.name
        loop = asyncio.get_running_loop()

        for attempt in range(1, self.config.max_attempts + 1):
            remaining = self._remaining(loop, deadline, label, attempt)

            try:
                if remaining is None:
                    result = await operation()
                else:
                    result = await asyncio.wait_for(operation(), timeout=remaining)
            except asyncio.TimeoutError as exc:
                if deadline is None:
                    raise
                self.logger.warning("Deadline reached during attempt", operation=label, attempt=attempt)
                raise DeadlineExceededError(
                    f"{label} did not complete before its deadline",
                    details={"attempt": attempt}
                ) from exc
            except TRANSIENT_EXCEPTIONS as exc:
                reason = str(exc) or type(exc).__name__
                if attempt == self.config.max_attempts:
                    self.logger.error(
                        "All retry attempts exhausted",
                        operation=label,
                        attempt=attempt,
                        max_attempts=self.config.max_attempts,
                        error=reason
                    )
                    self._count(label, "exhausted")
                    raise TransientNetworkError(
                        f"{label} failed with a transport error: {reason}",
                        attempts=attempt,
                        details={"operation": label}
                    ) from exc

                delay = _calculate_delay(attempt, self.config)
                if deadline is not None and loop.time() + delay >= deadline:
                    self.logger.warning(
                        "Deadline would pass during backoff",
                        operation=label,
                        attempt=attempt,
                        delay=round(delay, 4),
                        error=reason
                    )
                    raise DeadlineExceededError(
                        f"{label} cannot be retried before its deadline",
                        details={"attempt": attempt, "last_error": reason}
                    ) from exc

                self.logger.warning(
                    "Retry attempt failed, waiting before next attempt",
                    operation=label,
                    attempt=attempt,
                    delay=round(delay, 4),
                    error=reason
                )
                self._count(label, "retry")
                await self._sleep(delay)
                continue

            if attempt > 1:
                self.logger.info("Retry succeeded", operation=label, attempt=attempt)
            return result

        # max_attempts >= 1, so the loop always returns or raises
        raise AssertionError("unreachable")

    def _remaining(self, loop: asyncio.AbstractEventLoop, deadline: Optional[float],
                   label: str, attempt: int) -> Optional[float]:
        """Time left before ``deadline``; raises once it has passed."""
        if deadline is None:
            return None
        remaining = deadline - loop.time()
        if remaining <= 0:
            self.logger.warning("Deadline passed before attempt", operation=label, attempt=attempt)
            raise DeadlineExceededError(
                f"{label} deadline passed before attempt {attempt}",
                details={"attempt": attempt}
            )
        return remaining

    def _count(self, label: str, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("retries_total", operation=label, outcome=outcome)
