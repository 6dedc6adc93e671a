"""
Error taxonomy for the billing pipeline.

Every error raised by the pipeline carries an ErrorKind and a context dict so
callers can decide between retrying, dead-lettering and skipping without
inspecting message strings.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Structured classification of pipeline failures."""
    NOT_FOUND = "NotFound"
    VALIDATION = "Validation"
    DUPLICATE = "Duplicate"
    TRANSIENT = "TransientInfrastructure"
    PERMANENT = "Permanent"

    @property
    def retryable(self) -> bool:
        """Whether the platform should redeliver work that failed this way."""
        return self is ErrorKind.TRANSIENT


class BillingError(Exception):
    """Base class for billing pipeline errors."""

    kind: ErrorKind = ErrorKind.PERMANENT

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class NotFoundError(BillingError):
    """Referenced policy or customer does not exist."""

    kind = ErrorKind.NOT_FOUND


class BillingValidationError(BillingError):
    """Invalid input such as an inverted billing period."""

    kind = ErrorKind.VALIDATION


class DuplicateInvoiceError(BillingError):
    """An invoice already exists for the policy and billing period."""

    kind = ErrorKind.DUPLICATE


class TransientInfrastructureError(BillingError):
    """Store, document store or transport temporarily unavailable."""

    kind = ErrorKind.TRANSIENT


class InvoiceNumberConflictError(TransientInfrastructureError):
    """The generated invoice number is already taken; a fresh number succeeds."""


class PermanentError(BillingError):
    """Serialization or rendering failure that retrying will not fix."""

    kind = ErrorKind.PERMANENT
