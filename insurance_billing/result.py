"""
Result type for per-item pipeline outcomes.

Batch processing records one Result per policy instead of letting exceptions
escape, so the batch report carries structured failure data.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from insurance_billing.errors import BillingError, ErrorKind

T = TypeVar("T")


@dataclass(frozen=True)
class Failure:
    """Structured description of a failed unit of work."""

    kind: ErrorKind
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


def classify_exception(exc: BaseException) -> ErrorKind:
    """
    Map an exception to an ErrorKind.

    Pipeline errors carry their own kind. Database and OS level errors are
    treated as transient infrastructure problems; anything else is permanent.

    Args:
        exc: Exception to classify

    Returns:
        ErrorKind for the exception
    """
    if isinstance(exc, BillingError):
        return exc.kind
    if isinstance(exc, (SQLAlchemyError, OSError, TimeoutError)):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a success value or a Failure.

    Usage:
        result = Result.success(notification)
        result = Result.from_exception(exc, policy_id=str(policy_id))
        if result.ok:
            handle(result.value)
    """

    value: T | None = None
    failure: Failure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T | None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, **context: Any) -> "Result[T]":
        return cls(failure=Failure(kind=kind, message=message, context=context))

    @classmethod
    def from_exception(cls, exc: BaseException, **context: Any) -> "Result[T]":
        """
        Build a failed Result from an exception.

        Args:
            exc: The exception that ended the unit of work
            **context: Extra context merged over the exception's own context

        Returns:
            Failed Result
        """
        merged: dict[str, Any] = {}
        if isinstance(exc, BillingError):
            merged.update(exc.context)
            message = exc.message
        else:
            message = str(exc) or type(exc).__name__
        merged.update(context)
        merged.setdefault("error_type", type(exc).__name__)
        return cls.fail(classify_exception(exc), message, **merged)

    def unwrap(self) -> T | None:
        """Return the value or raise if this Result is a failure."""
        if self.failure is not None:
            raise ValueError(f"{self.failure.kind.value}: {self.failure.message}")
        return self.value
