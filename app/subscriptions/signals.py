"""
Signals for subscriptions.

This module defines:
- subscription_approved: sent by the lifecycle coordinator after an
  approval has been written
- the receiver that grants the subscriber role on approval
- receivers that clear the cached refund policy list when policies or
  tiers change

Related files:
    - apps.py: Signal import in ready()
    - roles.py: SubscriberRoleService
    - stores.py: CachedPolicyCatalog

Usage:
    from subscriptions.signals import subscription_approved

    await subscription_approved.asend_robust(sender=..., subscription=record)
"""

import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import Signal, receiver

from .models import RefundPolicy, RefundTier
from .roles import SubscriberRoleService
from .stores import DjangoRoleDirectory, invalidate_refund_policy_cache

logger = logging.getLogger(__name__)

# Sent with keyword argument: subscription (SubscriptionRecord after approval)
subscription_approved = Signal()

subscriber_roles = SubscriberRoleService(DjangoRoleDirectory())


@receiver(subscription_approved)
async def assign_subscriber_role(sender, subscription, **kwargs):
    """Grant the subscriber role to the approved subscription's customer."""
    result = await subscriber_roles.assign(subscription.customer_id)
    if not result:
        logger.info(
            f"Subscriber role not assigned for subscription {subscription.id}: "
            f"{result.error_code}"
        )
    return result


@receiver(post_save, sender=RefundPolicy)
@receiver(post_delete, sender=RefundPolicy)
@receiver(post_save, sender=RefundTier)
@receiver(post_delete, sender=RefundTier)
def clear_refund_policy_cache(sender, instance, **kwargs):
    """Invalidate the cached active policy list."""
    invalidate_refund_policy_cache()
    logger.debug(f"Refund policy cache cleared after change to {instance}")
