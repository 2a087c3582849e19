"""
Refund tier selection.

select_tier picks the tier of a policy that applies to a number of
elapsed days. Admin-entered tiers may overlap or leave gaps, so the
selection always falls back to some tier when the policy has any.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..types import RefundPolicyRecord, RefundTierRecord


def select_tier(policy: RefundPolicyRecord, elapsed_days: int) -> RefundTierRecord | None:
    """
    Pick the applicable tier for elapsed_days.

    Order of preference:
        1. First tier (by start day) whose [start_day, end_day] contains
           the value; a missing end_day is open ended
        2. Last tier whose start_day <= elapsed_days
        3. The tier with the largest start_day

    Returns:
        The tier, or None only when the policy has no tiers
    """
    if not policy.tiers:
        return None

    ordered = sorted(policy.tiers, key=lambda tier: tier.start_day)
    for tier in ordered:
        if tier.contains(elapsed_days):
            return tier

    fallback = None
    for tier in ordered:
        if tier.start_day <= elapsed_days:
            fallback = tier
    return fallback if fallback is not None else ordered[-1]
