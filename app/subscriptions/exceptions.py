"""
Subscription-specific exceptions.

This module defines exceptions for the subscription lifecycle, extending
the base exceptions from core.exceptions.

Exception Hierarchy:
    SubscriptionError (base, BaseApplicationError)
    ├── SubscriptionNotFoundError - Unknown subscription id (NotFoundError)
    ├── SubscriptionValidationError - Rejected update input (ValidationError)
    ├── StaleRecordError - Document changed since it was read (ConflictError)
    └── InvalidStateTransitionError - Status change not allowed (ConflictError)

Usage:
    from subscriptions.exceptions import SubscriptionNotFoundError

    document = await store.get_document(subscription_id)
    if document is None:
        raise SubscriptionNotFoundError(subscription_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

if TYPE_CHECKING:
    from typing import Any


class SubscriptionError(BaseApplicationError):
    """
    Base exception for all subscription operations.

    Example:
        try:
            await coordinator.cancel(subscription_id)
        except SubscriptionError as e:
            logger.error(f"Cancellation failed: {e}")
    """

    default_error_code: str = "SUBSCRIPTION_ERROR"


class SubscriptionNotFoundError(SubscriptionError, NotFoundError):
    """Raised when a subscription id does not exist in the store."""

    default_error_code: str = "SUBSCRIPTION_NOT_FOUND"

    def __init__(self, subscription_id: Any, error_code: str | None = None):
        self.subscription_id = subscription_id
        super().__init__(
            f"Subscription request {subscription_id} not found",
            error_code=error_code,
            details={"subscription_id": str(subscription_id)},
        )


class SubscriptionValidationError(SubscriptionError, ValidationError):
    """
    Raised when input to create/update cannot be accepted.

    Covers unknown or read-only fields in an update partial, paused-meal
    changes on a subscription that is not approved, and checkout input
    missing a customer or start date.

    Example:
        raise SubscriptionValidationError(
            "Unknown fields in subscription update",
            details={"fields": ["colour"]},
        )
    """

    default_error_code: str = "SUBSCRIPTION_VALIDATION_ERROR"


class StaleRecordError(SubscriptionError, ConflictError):
    """
    Raised when a conditional write finds a newer version of the document.

    Every subscription write is made conditional on the version read at
    the start of the operation. Losing that race (for example two staff
    members cancelling the same subscription at once) raises this error,
    which runs the wallet compensation before reaching the caller.

    Attributes:
        details: Contains subscription_id and expected_version
    """

    default_error_code: str = "STALE_RECORD"


class InvalidStateTransitionError(SubscriptionError, ConflictError):
    """
    Raised when a status change is not allowed from the current status.

    Attributes:
        details: Contains current_status and target_status

    Example:
        raise InvalidStateTransitionError(
            "Cannot move subscription from 'rejected' to 'approved'",
            details={"current_status": "rejected", "target_status": "approved"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


__all__ = [
    "SubscriptionError",
    "SubscriptionNotFoundError",
    "SubscriptionValidationError",
    "StaleRecordError",
    "InvalidStateTransitionError",
]
