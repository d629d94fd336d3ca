"""Retry, timeout and circuit-breaker execution for fallible operations.

Every collaborator call that can fail (profile reads, validators, model
calls made by a host application) goes through ``ResilienceExecutor``.
Each executor owns its own breaker table, so isolated instances can be
created for tests or per-process wiring instead of sharing global state.
"""

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .config import Settings, get_settings
from .exceptions import OperationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[Any]]
Clock = Callable[[], datetime]


@dataclass
class CircuitBreakerState:
    """Failure bookkeeping for one named operation."""

    failure_count: int = 0
    last_failure_time: Optional[datetime] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "last_error": self.last_error,
        }


class ResilienceExecutor:
    """
    Executes operations with retry, linear backoff, per-attempt timeout and
    a per-operation circuit breaker.

    Defaults: 3 attempts, 2s base delay (sleep ``attempt * base_delay``
    between attempts), 30s timeout per attempt, breaker opens after 5
    consecutive failures and stays open for 5 minutes after the latest one.

    The timeout bounds awaitables only. A synchronous operation runs inline
    on the event loop and is never interrupted, so blocking work should be
    wrapped by the caller (for example ``lambda: asyncio.to_thread(fn)``).
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_seconds: float = 2.0,
        timeout_seconds: float = 30.0,
        failure_threshold: int = 5,
        cooldown: timedelta = timedelta(minutes=5),
        sleeper: Optional[Sleeper] = None,
        clock: Optional[Clock] = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay_seconds = base_delay_seconds
        self.timeout_seconds = timeout_seconds
        self.failure_threshold = failure_threshold
        self.cooldown = cooldown
        self._sleep = sleeper or asyncio.sleep
        self._now = clock or datetime.utcnow
        self._states: Dict[str, CircuitBreakerState] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides: Any) -> "ResilienceExecutor":
        """Build an executor from application settings."""
        settings = settings or get_settings()
        options: Dict[str, Any] = {
            "max_attempts": settings.RESILIENCE_MAX_ATTEMPTS,
            "base_delay_seconds": settings.RESILIENCE_BASE_DELAY_SECONDS,
            "timeout_seconds": settings.RESILIENCE_TIMEOUT_SECONDS,
            "failure_threshold": settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            "cooldown": timedelta(seconds=settings.CIRCUIT_BREAKER_COOLDOWN_SECONDS),
        }
        options.update(overrides)
        return cls(**options)

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_with_fallback(
        self,
        operation_name: str,
        operation: Callable[[], Any],
        fallback: Optional[Callable[[], Any]] = None,
        retry_enabled: bool = True,
        circuit_breaker_enabled: bool = True,
    ) -> Optional[Any]:
        """
        Run ``operation`` with retries, falling back when it keeps failing.

        Args:
            operation_name: Key for circuit-breaker bookkeeping
            operation: Zero-argument callable returning a value or awaitable;
                only awaitables are subject to ``timeout_seconds``
            fallback: Optional zero-argument callable used when the operation
                cannot produce a result
            retry_enabled: Attempt up to ``max_attempts`` times when True, once otherwise
            circuit_breaker_enabled: Short-circuit to the fallback while the breaker is open

        Returns:
            The operation result, the fallback result, or None
        """
        if circuit_breaker_enabled and self.is_circuit_open(operation_name):
            logger.warning(f"Circuit breaker OPEN for {operation_name} - using fallback")
            return await self._run_fallback(operation_name, fallback)

        attempts_allowed = self.max_attempts if retry_enabled else 1
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts_allowed + 1):
            try:
                logger.debug(f"Attempting {operation_name} (attempt {attempt}/{attempts_allowed})")
                result = await self._run_attempt(operation_name, operation)
            except Exception as e:
                last_error = e
                logger.warning(f"{operation_name} failed (attempt {attempt}): {e}")
                self._record_failure(operation_name, e)

                if attempt < attempts_allowed:
                    await self._sleep(self.base_delay_seconds * attempt)
                continue

            self._record_success(operation_name)
            logger.debug(f"{operation_name} completed successfully")
            return result

        logger.error(
            f"{operation_name} failed after {attempts_allowed} attempts - using fallback. "
            f"Last error: {last_error}"
        )
        return await self._run_fallback(operation_name, fallback)

    async def _run_attempt(self, operation_name: str, operation: Callable[[], Any]) -> Any:
        """Run one attempt; an awaitable result is bounded by the per-attempt timeout."""
        try:
            outcome = operation()
            if inspect.isawaitable(outcome):
                outcome = await asyncio.wait_for(outcome, timeout=self.timeout_seconds)
            return outcome
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(operation_name, self.timeout_seconds) from e

    async def _run_fallback(self, operation_name: str, fallback: Optional[Callable[[], Any]]) -> Optional[Any]:
        if fallback is None:
            return None
        try:
            outcome = fallback()
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome
        except Exception as e:
            logger.error(f"Fallback for {operation_name} also failed: {e}")
            return None

    # =========================================================================
    # Circuit breaker bookkeeping
    # =========================================================================

    def is_circuit_open(self, operation_name: str) -> bool:
        """Return True while the named operation is tripped and cooling down."""
        with self._lock:
            state = self._states.get(operation_name)
            if state is None or state.failure_count < self.failure_threshold:
                return False
            if state.last_failure_time is None:
                return False
            return self._now() - state.last_failure_time < self.cooldown

    def _record_failure(self, operation_name: str, error: BaseException) -> None:
        with self._lock:
            state = self._states.setdefault(operation_name, CircuitBreakerState())
            state.failure_count += 1
            state.last_failure_time = self._now()
            state.last_error = str(error) or error.__class__.__name__

    def _record_success(self, operation_name: str) -> None:
        with self._lock:
            state = self._states.setdefault(operation_name, CircuitBreakerState())
            state.failure_count = 0
            state.last_error = None

    def get_state(self, operation_name: str) -> CircuitBreakerState:
        """Return a snapshot of the breaker state for one operation."""
        with self._lock:
            state = self._states.get(operation_name) or CircuitBreakerState()
            return CircuitBreakerState(
                failure_count=state.failure_count,
                last_failure_time=state.last_failure_time,
                last_error=state.last_error,
            )

    def last_error(self, operation_name: str) -> Optional[str]:
        """Message of the most recent failure for an operation, if any."""
        return self.get_state(operation_name).last_error

    def error_report(self) -> Dict[str, Any]:
        """Summarize failure counts and breaker status for debugging."""
        with self._lock:
            names = list(self._states)
            snapshot = {name: self._states[name].to_dict() for name in names}

        return {
            "failure_counts": {name: data["failure_count"] for name, data in snapshot.items()},
            "last_failure_times": {name: data["last_failure_time"] for name, data in snapshot.items()},
            "circuit_breaker_states": [
                {
                    "operation": name,
                    "is_open": self.is_circuit_open(name),
                    "failures": snapshot[name]["failure_count"],
                }
                for name in names
            ],
            "generated_at": self._now().isoformat(),
        }

    def reset(self) -> None:
        """Clear all breaker state."""
        with self._lock:
            self._states.clear()
        logger.info("Error tracking reset")
