"""
Operation instrumentation.

Wraps orchestration, invoice generation and message sends with timing,
structured logging and outcome counters:

    @instrumented("generate")
    def generate_invoice(...):
        ...

Outcomes are "success", "skipped" (the call returned None) or the
ErrorKind value of the failure.
"""

import functools
import threading
import time
from typing import Any, Callable, TypeVar

import structlog

from insurance_billing.result import classify_exception

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])

OPERATIONS = ("orchestrate", "generate", "send")


class OperationStats:
    """Thread-safe counters of operation outcomes and durations."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: dict[str, dict[str, int]] = {}
        self._durations: dict[str, float] = {}

    def record(self, operation: str, outcome: str, duration_seconds: float) -> None:
        with self._lock:
            outcomes = self._counts.setdefault(operation, {})
            outcomes[outcome] = outcomes.get(outcome, 0) + 1
            self._durations[operation] = self._durations.get(operation, 0.0) + duration_seconds

    def count(self, operation: str, outcome: str | None = None) -> int:
        """Calls of an operation, optionally restricted to one outcome."""
        with self._lock:
            outcomes = self._counts.get(operation, {})
            if outcome is None:
                return sum(outcomes.values())
            return outcomes.get(outcome, 0)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Copy of all counters with total duration per operation."""
        with self._lock:
            return {
                op: {
                    "outcomes": dict(outcomes),
                    "total_seconds": round(self._durations.get(op, 0.0), 6),
                }
                for op, outcomes in self._counts.items()
            }

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
            self._durations.clear()


operation_stats = OperationStats()


def instrumented(operation: str, stats: OperationStats | None = None) -> Callable[[F], F]:
    """
    Decorate a function with timing, logging and outcome counting.

    Args:
        operation: Operation name (orchestrate, generate or send)
        stats: Registry to record into (defaults to the module registry)

    Returns:
        Decorator
    """
    if operation not in OPERATIONS:
        raise ValueError(f"Unknown operation '{operation}'. Expected one of: {', '.join(OPERATIONS)}")

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            registry = stats if stats is not None else operation_stats
            started = time.perf_counter()
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                elapsed = time.perf_counter() - started
                outcome = classify_exception(e).value
                registry.record(operation, outcome, elapsed)
                logger.warning(
                    "operation_failed",
                    operation=operation,
                    function=fn.__qualname__,
                    outcome=outcome,
                    duration_ms=round(elapsed * 1000, 2),
                    error=str(e),
                )
                raise

            elapsed = time.perf_counter() - started
            outcome = "skipped" if result is None else "success"
            registry.record(operation, outcome, elapsed)
            logger.debug(
                "operation_completed",
                operation=operation,
                function=fn.__qualname__,
                outcome=outcome,
                duration_ms=round(elapsed * 1000, 2),
            )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
