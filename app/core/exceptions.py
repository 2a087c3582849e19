"""
Base exception classes for application-wide error handling.

This module provides a standardized exception hierarchy that enables:
- Consistent error payloads across the subscription and wallet apps
- Machine-readable error codes for client handling
- Detailed error information for debugging

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Input validation failures
    ├── NotFoundError - Resource not found
    ├── ConflictError - State conflicts (stale versions, invalid transitions)
    └── ExternalServiceError - Failures of a backing store or collaborator

Usage:
    from core.exceptions import ValidationError, NotFoundError

    # Raise with message only
    raise ValidationError("Unknown field 'foo'")

    # Raise with error code for client handling
    raise NotFoundError("Subscription not found", error_code="SUBSCRIPTION_NOT_FOUND")

    # Raise with additional details
    raise ValidationError(
        "Validation failed",
        error_code="VALIDATION_ERROR",
        details={"fields": ["foo", "bar"]},
    )

    # Convert to dict for an API response
    try:
        ...
    except BaseApplicationError as e:
        return e.to_dict()

Note:
    These exceptions are for domain/business logic errors raised by the
    service layer. Stores translate database errors into
    ExternalServiceError so callers see one failure type per backend.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, identifiers, etc.)

    Example:
        try:
            await coordinator.cancel(subscription_id)
        except NotFoundError as e:
            logger.warning(f"Subscription not found: {e.error_code}")
            return e.to_dict()
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for an API response.

        Returns:
            Dict with error, error_code, and details keys

        Example:
            {
                "error": "Subscription not found",
                "error_code": "SUBSCRIPTION_NOT_FOUND",
                "details": {"subscription_id": "..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Use for:
    - Unknown or read-only fields in a partial update
    - Malformed values that cannot be coerced to a documented default
    - Business rule violations on input

    Example:
        raise ValidationError(
            "Unknown fields in update",
            error_code="UNKNOWN_FIELDS",
            details={"fields": ["colour"]},
        )
    """

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for single-resource lookups where existence is expected, such as
    loading a subscription by id or the wallet of a customer.

    Example:
        raise NotFoundError(
            f"Wallet for customer {customer_id} not found",
            error_code="WALLET_NOT_FOUND",
            details={"customer_id": customer_id},
        )
    """

    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """
    Raised when operation conflicts with current resource state.

    Use for:
    - Concurrent modification conflicts (optimistic locking failures)
    - Invalid state transitions

    Example:
        if subscription.status == "rejected":
            raise ConflictError(
                "Cannot cancel a rejected subscription",
                error_code="INVALID_STATE_TRANSITION",
                details={"current_status": "rejected", "action": "cancel"},
            )

    Note:
        HTTP 409 Conflict is the appropriate status for these errors.
    """

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """
    Raised when a backing store or external collaborator fails.

    Example:
        try:
            policies = await catalog.list_active_refund_policies()
        except DatabaseError as e:
            raise ExternalServiceError(
                "Refund policy catalog unavailable",
                details={"original_error": str(e)},
            )

    Note:
        Log the original error for debugging but don't expose internal
        details to clients in production.
    """

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"
