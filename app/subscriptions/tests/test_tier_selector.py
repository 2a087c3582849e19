"""Tests for refund tier selection."""

from decimal import Decimal

import pytest

from subscriptions.services.tier_selector import select_tier
from subscriptions.tests.factories import RefundPolicyRecordFactory
from subscriptions.types import RefundTierRecord


def tier(start, end, percent, label=None):
    return RefundTierRecord(start, end, Decimal(percent), label=label)


class TestSelectTier:
    """Tests for select_tier()."""

    @pytest.mark.parametrize(
        "elapsed, expected_label",
        [
            (0, "First week"),
            (7, "First week"),
            (8, "Second week"),
            (15, "Second week"),
            (16, "Late"),
            (400, "Late"),
        ],
    )
    def test_picks_containing_tier(self, elapsed, expected_label):
        """Should pick the tier whose inclusive range holds the elapsed days."""
        policy = RefundPolicyRecordFactory()

        assert select_tier(policy, elapsed).label == expected_label

    def test_tiers_are_ordered_by_start_day(self):
        """Catalog order should not matter."""
        policy = RefundPolicyRecordFactory(
            tiers=(tier(10, None, "10", "late"), tier(0, 9, "90", "early"))
        )

        assert select_tier(policy, 3).label == "early"
        assert select_tier(policy, 12).label == "late"

    def test_overlap_prefers_earliest_start(self):
        """Overlapping tiers should resolve to the first by start day."""
        policy = RefundPolicyRecordFactory(
            tiers=(tier(5, 20, "25", "wide"), tier(0, 10, "80", "narrow"))
        )

        assert select_tier(policy, 7).label == "narrow"

    def test_gap_falls_back_to_last_started_tier(self):
        """Elapsed days in a gap should use the last tier already started."""
        policy = RefundPolicyRecordFactory(
            tiers=(tier(0, 5, "80", "a"), tier(6, 10, "60", "b"), tier(20, 30, "10", "c"))
        )

        assert select_tier(policy, 15).label == "b"

    def test_before_every_tier_uses_largest_start(self):
        """When no tier has started yet, the tier with the largest start day applies."""
        policy = RefundPolicyRecordFactory(
            tiers=(tier(2, 5, "80", "a"), tier(6, 10, "60", "b"))
        )

        assert select_tier(policy, 0).label == "b"

    def test_no_tiers_returns_none(self):
        """A policy without tiers has nothing to select."""
        policy = RefundPolicyRecordFactory(tiers=())

        assert select_tier(policy, 3) is None

    @pytest.mark.parametrize("elapsed", range(0, 45, 4))
    def test_always_selects_when_tiers_exist(self, elapsed):
        """Any elapsed value should resolve to some tier."""
        policy = RefundPolicyRecordFactory(
            tiers=(tier(3, 4, "50"), tier(10, 12, "30"), tier(30, 31, "5"))
        )

        assert select_tier(policy, elapsed) is not None
