"""Async circuit breaker guarding calls to an external collaborator."""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from loguru import logger

from .exceptions import CircuitBreakerOpenError

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failures exceeded threshold, rejecting calls
    HALF_OPEN = "half_open"  # One trial call allowed


class CircuitBreaker:
    """
    Circuit breaker with async support.

    Counts consecutive failures of the wrapped call. Once ``failure_threshold``
    is reached the circuit opens and calls are rejected with
    :class:`CircuitBreakerOpenError` until ``recovery_seconds`` have elapsed.
    The next call is then let through as a trial: success closes the circuit,
    failure opens it again.

    Example:
        ```python
        breaker = CircuitBreaker(name="routing", failure_threshold=3)
        result = await breaker.call(client.route, pickup, dropoff)
        ```
    """

    def __init__(
        self,
        name: str = "CircuitBreaker",
        failure_threshold: int = 5,
        recovery_seconds: float = 60.0,
        counted_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Name used in log lines
            failure_threshold: Consecutive failures before opening the circuit
            recovery_seconds: Time to wait before allowing a trial call
            counted_exceptions: Exception types that count as failures
            clock: Monotonic clock, injectable for tests
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_seconds = recovery_seconds
        self.counted_exceptions = counted_exceptions
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state

    @property
    def failure_count(self) -> int:
        """Get current consecutive failure count."""
        return self._failure_count

    def _refresh_state(self) -> None:
        """Move OPEN to HALF_OPEN once the recovery window has passed. Lock must be held."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self._clock() - self._opened_at >= self.recovery_seconds:
                self._state = CircuitState.HALF_OPEN
                logger.info(f"{self.name}: circuit half-open, allowing trial call")

    async def allows_call(self) -> bool:
        """Return True if a call would be let through right now."""
        async with self._lock:
            self._refresh_state()
            return self._state != CircuitState.OPEN

    async def record_success(self) -> None:
        """Record a successful call."""
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info(f"{self.name}: circuit closed after successful trial call")
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None

    async def record_failure(self) -> None:
        """Record a failed call."""
        async with self._lock:
            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
                logger.warning(f"{self.name}: circuit reopened after failed trial call")
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.failure_threshold
            ):
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()
                logger.warning(
                    f"{self.name}: circuit opened after {self._failure_count} failures"
                )

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Call an async function through the circuit breaker.

        Raises:
            CircuitBreakerOpenError: If the circuit is open
            Exception: Whatever ``func`` raised
        """
        if not await self.allows_call():
            raise CircuitBreakerOpenError(
                f"{self.name}: circuit breaker is open", reset_time=self._reset_time()
            )

        try:
            result = await func(*args, **kwargs)
        except self.counted_exceptions:
            await self.record_failure()
            raise
        await self.record_success()
        return result

    def _reset_time(self) -> Optional[datetime]:
        if self._opened_at is None:
            return None
        remaining = max(0.0, self.recovery_seconds - (self._clock() - self._opened_at))
        return datetime.now(timezone.utc) + timedelta(seconds=remaining)

    async def reset(self) -> None:
        """Manually reset the circuit breaker to closed state."""
        async with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None
            logger.info(f"{self.name}: circuit manually reset to closed state")

    def get_stats(self) -> dict:
        """
        Get current circuit breaker statistics.

        Returns:
            Dictionary with state, failure_count and thresholds
        """
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_seconds": self.recovery_seconds,
        }
