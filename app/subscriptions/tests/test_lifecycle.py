"""
Tests for SubscriptionLifecycleCoordinator.

All tests run against the in-memory fakes from conftest.py. The clock is
fixed at 2026-01-10, so the default 30 day plan starting 2026-01-01 is
cancelled on day 10 (50% tier, 1000.00 of 2000.00 remaining refunded).

Sections:
    - Cancellation saga
    - Status changes and approval
    - General updates and paused meals
    - Reads and checkout
"""

import asyncio
import datetime
import logging
from decimal import Decimal

import pytest
from asgiref.sync import async_to_sync

from core.exceptions import ExternalServiceError
from subscriptions.exceptions import (
    InvalidStateTransitionError,
    StaleRecordError,
    SubscriptionNotFoundError,
    SubscriptionValidationError,
)
from subscriptions.services import (
    CancellationRefundCalculator,
    RefundPolicyResolver,
    SubscriptionLifecycleCoordinator,
)
from subscriptions.states import SubscriptionStatus
from subscriptions.tests.factories import FIXED_NOW, SubscriptionDocumentFactory
from subscriptions.tests.fakes import InMemorySubscriptionStore
from subscriptions.types import StatusUpdate
from wallets.services import WalletLedgerAdjuster
from wallets.tests.fakes import InMemoryWalletStore

CUSTOMER = "customer-1"


def add_subscription(store, **kwargs):
    kwargs.setdefault("id", "sub-1")
    return store.add(SubscriptionDocumentFactory(**kwargs))


def two_meal_plan(store, **kwargs):
    """10 day Lunch + Dinner plan, 1000.00 paid: each paused meal is worth 50."""
    return add_subscription(
        store,
        duration_days=10,
        meal_types=("Lunch", "Dinner"),
        total_payable=Decimal("1000.00"),
        **kwargs,
    )


class HangingWriteStore(InMemorySubscriptionStore):
    """Subscription store whose writes never finish."""

    def __init__(self):
        super().__init__()
        self.write_started = asyncio.Event()

    async def update_document(self, subscription_id, fields, expected_version=None):
        self.update_calls.append((subscription_id, dict(fields), expected_version))
        self.write_started.set()
        await asyncio.Event().wait()


class CompensationFailingWalletStore(InMemoryWalletStore):
    """Accepts the first adjustment and fails every later one."""

    async def increment_wallet_balance(self, customer_id, delta):
        if self.calls:
            self.calls.append((customer_id, delta))
            raise ExternalServiceError("wallet store went away")
        await super().increment_wallet_balance(customer_id, delta)


# ==========================================================================
# Cancellation saga
# ==========================================================================


class TestCancel:
    """Tests for cancel()."""

    def test_credits_refund_and_writes_document(
        self, coordinator, subscription_store, customer_wallets
    ):
        add_subscription(subscription_store)

        info = async_to_sync(coordinator.cancel)(
            "sub-1", processed_by_id="staff-9", processed_by_name="Ravi"
        )

        assert info.amount == Decimal("1000.00")
        assert info.processed_at == FIXED_NOW
        assert info.processed_by_id == "staff-9"
        assert customer_wallets.balances[CUSTOMER] == Decimal("2000.00")

        document = subscription_store.documents["sub-1"]
        assert document["status"] == SubscriptionStatus.CANCELLED
        assert document["cancelled_at"] == FIXED_NOW
        assert document["refund_info"]["amount"] == "1000.00"
        assert document["reviewed_by_name"] == "Ravi"
        assert document["version"] == 2

    def test_write_is_conditional_on_read_version(self, coordinator, subscription_store):
        add_subscription(subscription_store, version=4)

        async_to_sync(coordinator.cancel)("sub-1")

        _, _, expected_version = subscription_store.update_calls[0]
        assert expected_version == 4

    def test_cancelling_twice_returns_stored_refund(
        self, coordinator, subscription_store, customer_wallets
    ):
        """A repeated cancellation should neither write nor credit again."""
        add_subscription(subscription_store)

        first = async_to_sync(coordinator.cancel)("sub-1", processed_by_id="staff-9")
        second = async_to_sync(coordinator.cancel)("sub-1", processed_by_id="staff-1")

        assert second == first
        assert len(subscription_store.update_calls) == 1
        assert len(customer_wallets.calls) == 1
        assert customer_wallets.balances[CUSTOMER] == Decimal("2000.00")

    def test_failed_write_is_compensated(
        self, coordinator, subscription_store, customer_wallets, caplog
    ):
        """A +1000 credit followed by a failed write should be undone with -1000."""
        add_subscription(subscription_store)
        subscription_store.fail_updates_with = ExternalServiceError("document store down")

        with pytest.raises(ExternalServiceError, match="document store down"):
            async_to_sync(coordinator.cancel)("sub-1")

        assert customer_wallets.calls == [
            (CUSTOMER, Decimal("1000.00")),
            (CUSTOMER, Decimal("-1000.00")),
        ]
        assert customer_wallets.balances[CUSTOMER] == Decimal("1000.00")
        assert "Compensated wallet of customer customer-1" in caplog.text

    def test_failed_compensation_is_logged_critical(
        self, subscription_store, policy_catalog, role_directory, caplog
    ):
        """The original write error should surface even when compensation fails."""
        wallets = CompensationFailingWalletStore({CUSTOMER: Decimal("0.00")})
        coordinator = SubscriptionLifecycleCoordinator(
            store=subscription_store,
            calculator=CancellationRefundCalculator(RefundPolicyResolver(policy_catalog)),
            adjuster=WalletLedgerAdjuster(wallets),
            clock=lambda: FIXED_NOW,
        )
        add_subscription(subscription_store)
        subscription_store.fail_updates_with = ExternalServiceError("document store down")

        with pytest.raises(ExternalServiceError, match="document store down"):
            async_to_sync(coordinator.cancel)("sub-1")

        critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
        assert len(critical) == 1
        assert "manual reconciliation required" in critical[0].getMessage()
        assert wallets.balances[CUSTOMER] == Decimal("1000.00")

    def test_cancelled_write_is_compensated(
        self, coordinator, subscription_store, customer_wallets, caplog
    ):
        """A CancelledError from the write should still undo the wallet credit."""
        add_subscription(subscription_store)
        subscription_store.fail_updates_with = asyncio.CancelledError()

        async def cancel_subscription():
            with pytest.raises(asyncio.CancelledError):
                await coordinator.cancel("sub-1")

        async_to_sync(cancel_subscription)()

        assert customer_wallets.calls == [
            (CUSTOMER, Decimal("1000.00")),
            (CUSTOMER, Decimal("-1000.00")),
        ]
        assert customer_wallets.balances[CUSTOMER] == Decimal("1000.00")
        assert subscription_store.documents["sub-1"]["status"] == SubscriptionStatus.APPROVED
        assert "failed after wallet adjustment of 1000.00" in caplog.text
        assert "Compensated wallet of customer customer-1" in caplog.text

    def test_task_cancelled_during_write_is_compensated(
        self, policy_catalog, customer_wallets, role_directory
    ):
        store = HangingWriteStore()
        add_subscription(store)
        coordinator = SubscriptionLifecycleCoordinator(
            store=store,
            calculator=CancellationRefundCalculator(RefundPolicyResolver(policy_catalog)),
            adjuster=WalletLedgerAdjuster(customer_wallets),
            clock=lambda: FIXED_NOW,
        )

        async def cancel_then_abort():
            task = asyncio.create_task(coordinator.cancel("sub-1"))
            await store.write_started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        async_to_sync(cancel_then_abort)()

        assert customer_wallets.balances[CUSTOMER] == Decimal("1000.00")
        assert len(customer_wallets.calls) == 2
        assert store.documents["sub-1"]["status"] == SubscriptionStatus.APPROVED

    def test_wallet_failure_aborts_before_write(
        self, coordinator, subscription_store, customer_wallets
    ):
        add_subscription(subscription_store)
        customer_wallets.fail_with = ExternalServiceError("wallet store down")

        with pytest.raises(ExternalServiceError, match="wallet store down"):
            async_to_sync(coordinator.cancel)("sub-1")

        assert subscription_store.update_calls == []
        assert subscription_store.documents["sub-1"]["status"] == SubscriptionStatus.APPROVED

    def test_concurrent_cancellation_loses_and_is_compensated(
        self, coordinator, subscription_store, customer_wallets
    ):
        """If another writer got in first, the stale write fails and the credit is undone."""
        add_subscription(subscription_store)
        subscription_store.bump_before_update = True

        with pytest.raises(StaleRecordError):
            async_to_sync(coordinator.cancel)("sub-1")

        assert customer_wallets.balances[CUSTOMER] == Decimal("1000.00")
        assert len(customer_wallets.calls) == 2

    def test_zero_refund_skips_wallet(self, coordinator, subscription_store, customer_wallets):
        """Late in the plan the 0% tier applies and only the document is written."""
        add_subscription(subscription_store, start_date=datetime.date(2025, 12, 20))

        info = async_to_sync(coordinator.cancel)("sub-1")

        assert info.amount == Decimal("0.00")
        assert customer_wallets.calls == []
        assert subscription_store.documents["sub-1"]["status"] == SubscriptionStatus.CANCELLED

    def test_missing_policy_cancels_without_refund(
        self, coordinator, subscription_store, policy_catalog, customer_wallets
    ):
        policy_catalog.policies = []
        add_subscription(subscription_store)

        info = async_to_sync(coordinator.cancel)("sub-1")

        assert info.percent_applied == Decimal("0.00")
        assert info.remaining_amount == Decimal("2000.00")
        assert customer_wallets.calls == []

    def test_pending_can_be_cancelled(self, coordinator, subscription_store):
        add_subscription(subscription_store, status=SubscriptionStatus.PENDING)

        async_to_sync(coordinator.cancel)("sub-1")

        assert subscription_store.documents["sub-1"]["status"] == SubscriptionStatus.CANCELLED

    def test_rejected_cannot_be_cancelled(self, coordinator, subscription_store, customer_wallets):
        add_subscription(subscription_store, status=SubscriptionStatus.REJECTED)

        with pytest.raises(InvalidStateTransitionError):
            async_to_sync(coordinator.cancel)("sub-1")

        assert customer_wallets.calls == []
        assert subscription_store.update_calls == []

    def test_unknown_subscription(self, coordinator):
        with pytest.raises(SubscriptionNotFoundError):
            async_to_sync(coordinator.cancel)("missing")

    def test_subscription_without_customer_still_cancels(
        self, coordinator, subscription_store, customer_wallets
    ):
        add_subscription(subscription_store, customer_id=None)

        info = async_to_sync(coordinator.cancel)("sub-1")

        assert info.amount == Decimal("1000.00")
        assert customer_wallets.calls == []
        assert subscription_store.documents["sub-1"]["status"] == SubscriptionStatus.CANCELLED


# ==========================================================================
# Status changes and approval
# ==========================================================================


class TestUpdateStatus:
    """Tests for update_status()."""

    def test_approval_records_review_and_assigns_role(
        self, coordinator, subscription_store, role_directory
    ):
        add_subscription(subscription_store, status=SubscriptionStatus.PENDING)

        record = async_to_sync(coordinator.update_status)(
            "sub-1",
            StatusUpdate(status="approved", note="Welcome", reviewed_by="staff-9", reviewed_by_name="Ravi"),
        )

        assert record.status == SubscriptionStatus.APPROVED
        assert record.status_note == "Welcome"
        assert record.reviewed_by == "staff-9"
        assert record.reviewed_at == FIXED_NOW
        assert role_directory.roles[CUSTOMER] == {"subscriber"}

    def test_rejection_does_not_assign_role(self, coordinator, subscription_store, role_directory):
        add_subscription(subscription_store, status=SubscriptionStatus.PENDING)

        record = async_to_sync(coordinator.update_status)("sub-1", StatusUpdate(status="rejected"))

        assert record.status == SubscriptionStatus.REJECTED
        assert role_directory.roles[CUSTOMER] == set()

    def test_unknown_status_is_treated_as_pending(
        self, coordinator, subscription_store, caplog
    ):
        add_subscription(subscription_store, status=SubscriptionStatus.PENDING)

        record = async_to_sync(coordinator.update_status)(
            "sub-1", StatusUpdate(status="on-hold", note="Waiting for address")
        )

        assert record.status == SubscriptionStatus.PENDING
        assert record.status_note == "Waiting for address"
        assert "Unknown status 'on-hold'" in caplog.text

    def test_unknown_status_on_approved_is_rejected(self, coordinator, subscription_store):
        """Coercing to pending must still respect the state machine."""
        add_subscription(subscription_store)

        with pytest.raises(InvalidStateTransitionError):
            async_to_sync(coordinator.update_status)("sub-1", StatusUpdate(status="on-hold"))

    @pytest.mark.parametrize(
        "current, target",
        [
            (SubscriptionStatus.REJECTED, SubscriptionStatus.APPROVED),
            (SubscriptionStatus.APPROVED, SubscriptionStatus.REJECTED),
            (SubscriptionStatus.CANCELLED, SubscriptionStatus.APPROVED),
            (SubscriptionStatus.APPROVED, SubscriptionStatus.PENDING),
        ],
    )
    def test_disallowed_transitions(self, coordinator, subscription_store, current, target):
        add_subscription(subscription_store, status=current)

        with pytest.raises(InvalidStateTransitionError):
            async_to_sync(coordinator.update_status)("sub-1", StatusUpdate(status=target))

        assert subscription_store.update_calls == []

    def test_cancelled_runs_refund_saga(self, coordinator, subscription_store, customer_wallets):
        add_subscription(subscription_store)

        record = async_to_sync(coordinator.update_status)(
            "sub-1", StatusUpdate(status="cancelled", note="Moving city", reviewed_by="staff-9")
        )

        assert record.is_cancelled
        assert record.refund_info.amount == Decimal("1000.00")
        assert record.refund_info.processed_by_id == "staff-9"
        assert record.status_note == "Moving city"
        assert customer_wallets.balances[CUSTOMER] == Decimal("2000.00")

    def test_role_failure_does_not_fail_approval(
        self, coordinator, subscription_store, role_directory, caplog
    ):
        add_subscription(subscription_store, status=SubscriptionStatus.PENDING)
        role_directory.fail_with = RuntimeError("directory offline")

        record = async_to_sync(coordinator.update_status)("sub-1", StatusUpdate(status="approved"))

        assert record.status == SubscriptionStatus.APPROVED
        assert "Failed to assign subscriber role to user customer-1" in caplog.text

    def test_raising_approval_handler_is_logged(
        self, coordinator, subscription_store, monkeypatch, caplog
    ):
        class BrokenRoles:
            async def assign(self, user_id):
                raise RuntimeError("handler crashed")

        monkeypatch.setattr("subscriptions.signals.subscriber_roles", BrokenRoles())
        add_subscription(subscription_store, status=SubscriptionStatus.PENDING)

        record = async_to_sync(coordinator.update_status)("sub-1", StatusUpdate(status="approved"))

        assert record.status == SubscriptionStatus.APPROVED
        assert "Approval handler assign_subscriber_role failed" in caplog.text

    def test_customer_without_account_is_not_an_error(
        self, coordinator, subscription_store, role_directory
    ):
        add_subscription(
            subscription_store, status=SubscriptionStatus.PENDING, customer_id="unknown-user"
        )

        record = async_to_sync(coordinator.update_status)("sub-1", StatusUpdate(status="approved"))

        assert record.status == SubscriptionStatus.APPROVED
        assert "unknown-user" not in role_directory.roles


# ==========================================================================
# General updates and paused meals
# ==========================================================================


class TestUpdate:
    """Tests for update()."""

    def test_plain_fields(self, coordinator, subscription_store, customer_wallets):
        add_subscription(subscription_store)

        record = async_to_sync(coordinator.update)(
            "sub-1", {"notes": " Leave at gate ", "delivery_location_landmark": "Blue door"}
        )

        assert record.notes == "Leave at gate"
        assert record.delivery_location_landmark == "Blue door"
        assert customer_wallets.calls == []

    def test_pausing_meals_credits_wallet(self, coordinator, subscription_store, customer_wallets):
        """Pausing 3 meals worth 50 each credits 150."""
        two_meal_plan(subscription_store)
        meals = [
            {"date": "2026-01-04", "meal_type": "Dinner"},
            {"date": "2026-01-03", "meal_type": "Lunch"},
            {"date": "2026-01-04", "meal_type": "Lunch"},
        ]

        record = async_to_sync(coordinator.update)("sub-1", {"paused_meals": meals})

        assert customer_wallets.balances[CUSTOMER] == Decimal("1150.00")
        assert [m.key for m in record.paused_meals] == [
            "2026-01-03|Lunch",
            "2026-01-04|Lunch",
            "2026-01-04|Dinner",
        ]

    def test_resuming_meals_debits_wallet(self, coordinator, subscription_store, customer_wallets):
        two_meal_plan(
            subscription_store,
            paused_meals=[
                {"date": "2026-01-03", "meal_type": "Lunch"},
                {"date": "2026-01-04", "meal_type": "Lunch"},
            ],
        )

        async_to_sync(coordinator.update)(
            "sub-1", {"paused_meals": [{"date": "2026-01-04", "meal_type": "Lunch"}]}
        )

        assert customer_wallets.balances[CUSTOMER] == Decimal("950.00")

    def test_pause_then_resume_nets_to_zero(
        self, coordinator, subscription_store, customer_wallets
    ):
        two_meal_plan(subscription_store)
        meal = {"date": "2026-01-05", "meal_type": "Lunch"}

        async_to_sync(coordinator.update)("sub-1", {"paused_meals": [meal]})
        async_to_sync(coordinator.update)("sub-1", {"paused_meals": []})

        assert customer_wallets.balances[CUSTOMER] == Decimal("1000.00")

    def test_swapping_meals_writes_without_wallet_call(
        self, coordinator, subscription_store, customer_wallets
    ):
        two_meal_plan(
            subscription_store, paused_meals=[{"date": "2026-01-03", "meal_type": "Lunch"}]
        )

        record = async_to_sync(coordinator.update)(
            "sub-1", {"paused_meals": [{"date": "2026-01-06", "meal_type": "Lunch"}]}
        )

        assert customer_wallets.calls == []
        assert [m.key for m in record.paused_meals] == ["2026-01-06|Lunch"]

    def test_failed_paused_meal_write_is_compensated(
        self, coordinator, subscription_store, customer_wallets
    ):
        two_meal_plan(subscription_store)
        subscription_store.fail_updates_with = ExternalServiceError("document store down")

        with pytest.raises(ExternalServiceError):
            async_to_sync(coordinator.update)(
                "sub-1", {"paused_meals": [{"date": "2026-01-05", "meal_type": "Lunch"}]}
            )

        assert customer_wallets.calls == [
            (CUSTOMER, Decimal("50.00")),
            (CUSTOMER, Decimal("-50.00")),
        ]

    @pytest.mark.parametrize(
        "status", [SubscriptionStatus.PENDING, SubscriptionStatus.CANCELLED, SubscriptionStatus.REJECTED]
    )
    def test_paused_meals_need_approved_subscription(
        self, coordinator, subscription_store, customer_wallets, status
    ):
        two_meal_plan(subscription_store, status=status)

        with pytest.raises(SubscriptionValidationError):
            async_to_sync(coordinator.update)(
                "sub-1", {"paused_meals": [{"date": "2026-01-05", "meal_type": "Lunch"}]}
            )

        assert customer_wallets.calls == []

    def test_unknown_fields_are_rejected(self, coordinator, subscription_store):
        add_subscription(subscription_store)

        with pytest.raises(SubscriptionValidationError) as exc_info:
            async_to_sync(coordinator.update)("sub-1", {"notes": "x", "total_payable": "1"})

        assert exc_info.value.details["fields"] == ["total_payable"]
        assert subscription_store.update_calls == []

    def test_write_once_fields_are_ignored(self, coordinator, subscription_store):
        add_subscription(subscription_store)

        record = async_to_sync(coordinator.update)(
            "sub-1",
            {"refund_info": {"amount": "9999"}, "cancelled_at": FIXED_NOW, "notes": "x"},
        )

        assert record.refund_info is None
        assert record.cancelled_at is None
        assert record.notes == "x"

    def test_invalid_status_is_dropped(self, coordinator, subscription_store, caplog):
        add_subscription(subscription_store)

        record = async_to_sync(coordinator.update)("sub-1", {"status": "paused", "notes": "x"})

        assert record.status == SubscriptionStatus.APPROVED
        assert record.notes == "x"
        assert "Dropping invalid status 'paused'" in caplog.text

    def test_status_cancelled_runs_refund_saga(
        self, coordinator, subscription_store, customer_wallets
    ):
        add_subscription(subscription_store)

        record = async_to_sync(coordinator.update)(
            "sub-1", {"status": "cancelled", "status_note": "Moving city"}
        )

        assert record.is_cancelled
        assert record.status_note == "Moving city"
        assert record.refund_info.amount == Decimal("1000.00")
        assert customer_wallets.balances[CUSTOMER] == Decimal("2000.00")

    def test_cancel_with_paused_meals_is_rejected(
        self, coordinator, subscription_store, customer_wallets
    ):
        add_subscription(subscription_store)

        with pytest.raises(SubscriptionValidationError):
            async_to_sync(coordinator.update)("sub-1", {"status": "cancelled", "paused_meals": []})

        assert customer_wallets.calls == []

    def test_approval_through_update_assigns_role(
        self, coordinator, subscription_store, role_directory
    ):
        add_subscription(subscription_store, status=SubscriptionStatus.PENDING)

        record = async_to_sync(coordinator.update)("sub-1", {"status": "approved"})

        assert record.status == SubscriptionStatus.APPROVED
        assert role_directory.roles[CUSTOMER] == {"subscriber"}

    def test_empty_update_writes_nothing(self, coordinator, subscription_store):
        add_subscription(subscription_store)

        record = async_to_sync(coordinator.update)("sub-1", {"refund_info": None})

        assert record.id == "sub-1"
        assert subscription_store.update_calls == []

    def test_stale_update(self, coordinator, subscription_store):
        add_subscription(subscription_store)
        subscription_store.bump_before_update = True

        with pytest.raises(StaleRecordError):
            async_to_sync(coordinator.update)("sub-1", {"notes": "x"})


# ==========================================================================
# Reads and checkout
# ==========================================================================


class TestPreviewCancellation:
    """Tests for preview_cancellation()."""

    def test_has_no_side_effects(self, coordinator, subscription_store, customer_wallets):
        add_subscription(subscription_store)

        info = async_to_sync(coordinator.preview_cancellation)("sub-1")

        assert info.amount == Decimal("1000.00")
        assert subscription_store.update_calls == []
        assert customer_wallets.calls == []

    def test_as_of_date(self, coordinator, subscription_store):
        add_subscription(subscription_store)

        info = async_to_sync(coordinator.preview_cancellation)(
            "sub-1", as_of=datetime.date(2026, 1, 3)
        )

        assert info.amount == Decimal("2025.00")

    def test_cancelled_returns_stored_refund(self, coordinator, subscription_store):
        add_subscription(subscription_store)
        refund = async_to_sync(coordinator.cancel)("sub-1")

        assert async_to_sync(coordinator.preview_cancellation)("sub-1") == refund


class TestCreateSubscription:
    """Tests for create_subscription()."""

    def test_stores_pending_subscription(self, coordinator, subscription_store):
        subscription_id = async_to_sync(coordinator.create_subscription)(
            {
                "customer_id": CUSTOMER,
                "start_date": "2026-02-01",
                "duration_days": 30,
                "selections": [{"meal_type": "Lunch", "package_id": "pkg-lunch"}],
                "summary": {"duration_days": 30, "total_payable": "3000"},
            }
        )

        record = async_to_sync(coordinator.get)(subscription_id)
        assert record.status == SubscriptionStatus.PENDING
        assert record.paused_meals == ()
        assert record.end_date == datetime.date(2026, 3, 2)

    def test_invalid_input(self, coordinator, subscription_store):
        with pytest.raises(SubscriptionValidationError):
            async_to_sync(coordinator.create_subscription)({"start_date": "2026-02-01"})

        assert subscription_store.documents == {}
