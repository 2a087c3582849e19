"""
Subscriber role assignment.

Approving a subscription grants the customer the configured subscriber
role. This is best-effort work driven by the subscription_approved
signal: every failure is logged and returned as a failed ServiceResult,
never raised, so it can not be mistaken for a refund or wallet failure.

Usage:
    from subscriptions.roles import SubscriberRoleService
    from subscriptions.stores import DjangoRoleDirectory

    roles = SubscriberRoleService(DjangoRoleDirectory())
    result = await roles.assign(customer_id)
    if not result:
        print(result.error_code)  # e.g. "ROLE_NOT_CONFIGURED"
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from typing import Any

    from .protocols import RoleDirectory


class SubscriberRoleService(BaseService):
    """Grants the subscriber role to customers of approved subscriptions."""

    def __init__(self, directory: RoleDirectory):
        self.directory = directory

    async def assign(self, user_id: Any) -> ServiceResult[Any]:
        """
        Add the subscriber role to a user unless they already hold it.

        Returns:
            ServiceResult with the role id on success. Failure codes:
            NO_CUSTOMER, ROLE_NOT_CONFIGURED, USER_NOT_FOUND / ROLE_NOT_FOUND,
            or the exception class name for unexpected errors.
        """
        logger = self.get_logger()

        if not user_id:
            logger.warning("Subscription approved without a customer; no role assigned")
            return ServiceResult.failure("Subscription has no customer", "NO_CUSTOMER")

        try:
            role_id = await self.directory.get_default_subscriber_role_id()
            if role_id is None:
                logger.warning(
                    f"Subscription of user {user_id} approved but no subscriber role is configured"
                )
                return ServiceResult.failure(
                    "No subscriber role configured", "ROLE_NOT_CONFIGURED"
                )

            if await self.directory.user_has_role(user_id, role_id):
                logger.debug(f"User {user_id} already has subscriber role {role_id}")
                return ServiceResult.success(role_id)

            await self.directory.add_role_to_user(user_id, role_id)
        except NotFoundError as e:
            logger.warning(f"Subscriber role not assigned to user {user_id}: {e}")
            return ServiceResult.failure(e.message, e.error_code)
        except Exception as e:
            return self.handle_exception(e, f"Failed to assign subscriber role to user {user_id}")

        logger.info(f"Subscriber role {role_id} assigned to user {user_id}")
        return ServiceResult.success(role_id)
