"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from models and stores.
    Stores handle persistence, services handle the rules and the ordering
    of side effects.

Pattern Comparison:
    - ServiceResult: Use for expected failures of best-effort work
      (a role that is not configured, a user that no longer exists)
    - Exceptions: Use for failures the caller must see (missing records,
      store errors, conflicting writes)

Usage:
    from core.services import BaseService, ServiceResult

    class SubscriberRoleService(BaseService):
        async def assign(self, user_id) -> ServiceResult[str]:
            role_id = await self.directory.get_default_subscriber_role_id()
            if role_id is None:
                return ServiceResult.failure(
                    "No subscriber role configured",
                    error_code="ROLE_NOT_CONFIGURED",
                )
            await self.directory.add_role_to_user(user_id, role_id)
            return ServiceResult.success(role_id)

    result = await roles.assign(user_id)
    if not result:
        logger.warning(result.error)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling without exceptions.
    Use this for expected failures (validation errors, business rule violations,
    best-effort side effects that are allowed to fail).

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling

    Usage:
        # Success case
        return ServiceResult.success(role_id)

        # Failure case
        return ServiceResult.failure("User not found", "USER_NOT_FOUND")

        # Check result
        result = await roles.assign(user_id)
        if result.success:
            role_id = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Args:
            exc: The caught exception
            error_code: Optional error code (defaults to exception class name)

        Returns:
            ServiceResult with error details from exception
        """
        return cls(
            success=False,
            error=str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def __bool__(self) -> bool:
        """
        Allow using result in boolean context.

        Example:
            result = await roles.assign(user_id)
            if result:  # Same as: if result.success
                print("Assigned!")
        """
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Exception-to-result conversion for best-effort work

    Design Notes:
        - Services hold their collaborators (stores, directories) and
          nothing else; no per-request state lives on the instance
        - Use ServiceResult for expected failures
        - Raise exceptions for failures the caller has to handle
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.

        Returns:
            Logger instance for this service
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default ERROR)

        Returns:
            ServiceResult with error details

        Example:
            try:
                await self.directory.add_role_to_user(user_id, role_id)
            except DatabaseError as e:
                return self.handle_exception(e, "subscriber role assignment")
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message, exc_info=True)
        return ServiceResult.from_exception(exc)
