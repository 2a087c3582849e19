"""
Django ORM implementations of the subscription store protocols.

Stores:
    DjangoSubscriptionStore: SubscriptionRequest rows as documents, with
        version-conditional single-row updates
    DjangoPolicyCatalog: Active RefundPolicy rows with their tiers
    CachedPolicyCatalog: Django cache in front of any PolicyCatalog
    DjangoRoleDirectory: Subscriber role as a django.contrib.auth Group

Every database error is re-raised as core.exceptions.ExternalServiceError.

Usage:
    from subscriptions.stores import CachedPolicyCatalog, DjangoPolicyCatalog

    catalog = CachedPolicyCatalog(DjangoPolicyCatalog())
    policies = await catalog.list_active_refund_policies()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import sync_to_async
from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.db.models import F
from django.utils import timezone

from core.exceptions import ExternalServiceError, NotFoundError

from .exceptions import StaleRecordError, SubscriptionNotFoundError
from .models import RefundPolicy, SubscriptionRequest
from .normalization import normalize_policy

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from typing import Any

    from core.protocols import CacheBackend

    from .protocols import PolicyCatalog
    from .types import RefundPolicyRecord

logger = logging.getLogger(__name__)

REFUND_POLICY_CACHE_KEY = "subscriptions:refund_policies:active"


# =============================================================================
# Subscription documents
# =============================================================================


class DjangoSubscriptionStore:
    """
    SubscriptionStore backed by the SubscriptionRequest model.

    Documents are the row's field values (``.values()``), so nested JSON
    parts come back already decoded and the customer is ``customer_id``.
    """

    async def get_document(self, subscription_id: Any) -> dict[str, Any] | None:
        try:
            return await SubscriptionRequest.objects.filter(pk=subscription_id).values().afirst()
        except (DjangoValidationError, ValueError):
            # Malformed ids cannot match any row
            return None
        except DatabaseError as e:
            raise ExternalServiceError(
                f"Failed to load subscription {subscription_id}: {e}",
                details={"subscription_id": str(subscription_id)},
            ) from e

    async def update_document(
        self,
        subscription_id: Any,
        fields: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> None:
        queryset = SubscriptionRequest.objects.filter(pk=subscription_id)
        if expected_version is not None:
            queryset = queryset.filter(version=expected_version)

        try:
            updated = await queryset.aupdate(
                **fields,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )
            if updated:
                return
            exists = await SubscriptionRequest.objects.filter(pk=subscription_id).aexists()
        except DatabaseError as e:
            raise ExternalServiceError(
                f"Failed to update subscription {subscription_id}: {e}",
                details={"subscription_id": str(subscription_id)},
            ) from e

        if not exists:
            raise SubscriptionNotFoundError(subscription_id)
        raise StaleRecordError(
            f"SubscriptionRequest {subscription_id} has been modified",
            details={
                "subscription_id": str(subscription_id),
                "expected_version": expected_version,
            },
        )

    async def create_document(self, fields: Mapping[str, Any]) -> Any:
        try:
            instance = await SubscriptionRequest.objects.acreate(**fields)
        except DatabaseError as e:
            raise ExternalServiceError(f"Failed to create subscription: {e}") from e
        return instance.pk


# =============================================================================
# Refund policies
# =============================================================================


class DjangoPolicyCatalog:
    """PolicyCatalog backed by RefundPolicy / RefundTier rows."""

    async def list_active_refund_policies(self) -> list[RefundPolicyRecord]:
        try:
            return await sync_to_async(self._load_active)()
        except DatabaseError as e:
            raise ExternalServiceError(f"Refund policy catalog unavailable: {e}") from e

    @staticmethod
    def _load_active() -> list[RefundPolicyRecord]:
        policies = (
            RefundPolicy.objects.filter(active=True)
            .prefetch_related("tiers")
            .order_by("created_at", "id")
        )
        return [
            normalize_policy(
                {
                    "id": policy.pk,
                    "name": policy.name,
                    "description": policy.description,
                    "subscription_length_days": policy.subscription_length_days,
                    "category_ids": policy.applies_to_category_ids,
                    "product_ids": policy.applies_to_product_ids,
                    "active": policy.active,
                    "tiers": [
                        {
                            "start_day": tier.start_day,
                            "end_day": tier.end_day,
                            "refund_percent": tier.refund_percent,
                            "refund_source": tier.refund_source,
                            "label": tier.label,
                            "notes": tier.notes,
                        }
                        for tier in policy.tiers.all()
                    ],
                }
            )
            for policy in policies
        ]


class CachedPolicyCatalog:
    """
    Caches the active policy list of another catalog.

    The cache is a plain Django cache entry with a timeout
    (REFUND_POLICY_CACHE_TIMEOUT); saving or deleting a policy or tier
    clears it through the handlers in subscriptions.signals. A failing
    cache backend is logged and bypassed.
    """

    def __init__(
        self,
        inner: PolicyCatalog,
        cache_backend: CacheBackend | None = None,
        timeout: int | None = None,
    ):
        self.inner = inner
        self.cache = cache_backend if cache_backend is not None else cache
        self.timeout = settings.REFUND_POLICY_CACHE_TIMEOUT if timeout is None else timeout

    async def list_active_refund_policies(self) -> Sequence[RefundPolicyRecord]:
        try:
            cached = await self.cache.aget(REFUND_POLICY_CACHE_KEY)
        except Exception:
            logger.warning("Refund policy cache read failed", exc_info=True)
            cached = None
        if cached is not None:
            return cached

        policies = tuple(await self.inner.list_active_refund_policies())
        try:
            await self.cache.aset(REFUND_POLICY_CACHE_KEY, policies, timeout=self.timeout)
        except Exception:
            logger.warning("Refund policy cache write failed", exc_info=True)
        return policies

    async def invalidate(self) -> None:
        await self.cache.adelete(REFUND_POLICY_CACHE_KEY)


def invalidate_refund_policy_cache() -> None:
    """Drop the cached active policy list from the default cache."""
    cache.delete(REFUND_POLICY_CACHE_KEY)


# =============================================================================
# Roles
# =============================================================================


class DjangoRoleDirectory:
    """
    RoleDirectory on django.contrib.auth groups.

    The subscriber role is the group with id DEFAULT_SUBSCRIBER_ROLE_ID
    when that setting is present, otherwise the group named
    SUBSCRIBER_ROLE_NAME.
    """

    async def get_default_subscriber_role_id(self) -> Any | None:
        configured = settings.DEFAULT_SUBSCRIBER_ROLE_ID
        if configured is not None:
            return configured
        return (
            await Group.objects.filter(name=settings.SUBSCRIBER_ROLE_NAME)
            .values_list("pk", flat=True)
            .afirst()
        )

    async def user_has_role(self, user_id: Any, role_id: Any) -> bool:
        return await Group.objects.filter(pk=role_id, user__pk=user_id).aexists()

    async def add_role_to_user(self, user_id: Any, role_id: Any) -> None:
        User = get_user_model()
        try:
            user = await User.objects.aget(pk=user_id)
        except User.DoesNotExist:
            raise NotFoundError(
                f"User {user_id} not found",
                error_code="USER_NOT_FOUND",
                details={"user_id": str(user_id)},
            )
        try:
            group = await Group.objects.aget(pk=role_id)
        except Group.DoesNotExist:
            raise NotFoundError(
                f"Role {role_id} not found",
                error_code="ROLE_NOT_FOUND",
                details={"role_id": str(role_id)},
            )
        await user.groups.aadd(group)
