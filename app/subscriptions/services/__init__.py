"""
Subscription services.

Components (leaves first):
    select_tier                     - tier_selector.py
    RefundPolicyResolver            - policy_resolver.py
    CancellationRefundCalculator    - refund_calculator.py
    PausedMealReconciler            - paused_meals.py
    SubscriptionLifecycleCoordinator - lifecycle.py

The wallet side of the saga is wallets.services.WalletLedgerAdjuster.

Usage:
    from subscriptions.services import build_default_coordinator

    coordinator = build_default_coordinator()
    refund = await coordinator.preview_cancellation(subscription_id)
"""

from .lifecycle import SubscriptionLifecycleCoordinator
from .paused_meals import PausedMealReconciler, per_meal_value
from .policy_resolver import RefundPolicyResolver, select_policy
from .refund_calculator import CancellationRefundCalculator, compute_refund_for_policy
from .tier_selector import select_tier


def build_default_coordinator() -> SubscriptionLifecycleCoordinator:
    """Coordinator wired to the Django stores and the cached policy catalog."""
    from wallets.services import WalletLedgerAdjuster
    from wallets.stores import DjangoWalletStore

    from ..stores import CachedPolicyCatalog, DjangoPolicyCatalog, DjangoSubscriptionStore

    catalog = CachedPolicyCatalog(DjangoPolicyCatalog())
    return SubscriptionLifecycleCoordinator(
        store=DjangoSubscriptionStore(),
        calculator=CancellationRefundCalculator(RefundPolicyResolver(catalog)),
        adjuster=WalletLedgerAdjuster(DjangoWalletStore()),
    )


__all__ = [
    "SubscriptionLifecycleCoordinator",
    "PausedMealReconciler",
    "per_meal_value",
    "RefundPolicyResolver",
    "select_policy",
    "CancellationRefundCalculator",
    "compute_refund_for_policy",
    "select_tier",
    "build_default_coordinator",
]
