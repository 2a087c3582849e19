"""
Subscription lifecycle coordination.

SubscriptionLifecycleCoordinator is the entry point for every change to
a subscription: checkout, staff status changes, cancellation with refund,
and general updates including paused meals.

Money-moving operations are a two-step saga over stores that share no
transaction:

    1. adjust the wallet by the delta (refund or paused-meal value)
    2. write the subscription document, conditional on the version read
       at the start of the operation
    3. if step 2 fails, apply the negated delta to the wallet and
       re-raise the write error; a task cancelled during the write is
       compensated the same way

A failed wallet adjustment aborts before anything is written. A failed
compensation is logged at CRITICAL: the wallet then holds coins the
document does not account for and needs manual reconciliation.

Because every write is version-conditional, two concurrent cancellations
of the same subscription cannot both succeed. The loser gets
StaleRecordError and its wallet credit is compensated.

Usage:
    from subscriptions.services import build_default_coordinator
    from subscriptions.types import StatusUpdate

    coordinator = build_default_coordinator()
    record = await coordinator.update_status(
        subscription_id,
        StatusUpdate(status="approved", reviewed_by=str(staff.pk), reviewed_by_name="Asha"),
    )
    refund = await coordinator.cancel(subscription_id, processed_by_id=str(staff.pk))
"""

from __future__ import annotations

import asyncio
import dataclasses
from decimal import Decimal
from typing import TYPE_CHECKING

from django.utils import timezone

from core.services import BaseService

from ..exceptions import (
    InvalidStateTransitionError,
    SubscriptionNotFoundError,
    SubscriptionValidationError,
)
from ..models import can_change_status
from ..normalization import (
    UPDATABLE_FIELDS,
    WRITE_ONCE_FIELDS,
    is_valid_status,
    normalize_paused_meals,
    normalize_subscription,
    paused_meals_to_json,
    prepare_create_fields,
    prepare_update_fields,
    refund_info_to_json,
    to_optional_text,
)
from ..signals import subscription_approved
from ..states import SubscriptionStatus
from .paused_meals import PausedMealReconciler

if TYPE_CHECKING:
    import datetime
    from collections.abc import Callable, Mapping
    from typing import Any

    from wallets.services import WalletLedgerAdjuster

    from ..protocols import SubscriptionStore
    from ..types import RefundInfo, StatusUpdate, SubscriptionRecord
    from .refund_calculator import CancellationRefundCalculator


class SubscriptionLifecycleCoordinator(BaseService):
    """
    Orchestrates status transitions and updates of subscriptions.

    State machine (django-fsm transitions on SubscriptionRequest):
        pending -> approved | rejected
        pending | approved -> cancelled

    Same-status updates are allowed except on cancelled subscriptions.
    Cancelling a cancelled subscription returns the stored refund without
    any write or wallet call.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        calculator: CancellationRefundCalculator,
        adjuster: WalletLedgerAdjuster,
        reconciler: PausedMealReconciler | None = None,
        clock: Callable[[], datetime.datetime] | None = None,
    ):
        self.store = store
        self.calculator = calculator
        self.adjuster = adjuster
        self.reconciler = reconciler or PausedMealReconciler()
        self.clock = clock or timezone.now

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, subscription_id: Any) -> SubscriptionRecord:
        """
        Load a subscription.

        Raises:
            SubscriptionNotFoundError: If the id does not exist
        """
        document = await self.store.get_document(subscription_id)
        if document is None:
            raise SubscriptionNotFoundError(subscription_id)
        return normalize_subscription(document)

    async def preview_cancellation(
        self,
        subscription_id: Any,
        as_of: datetime.date | datetime.datetime | None = None,
    ) -> RefundInfo | None:
        """
        Refund the customer would get if cancelled at as_of (default now).

        No side effects. For a cancelled subscription the stored refund
        is returned.
        """
        record = await self.get(subscription_id)
        if record.is_cancelled:
            return record.refund_info
        return await self.calculator.compute_refund(record, as_of or self.clock())

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_subscription(self, data: Mapping[str, Any]) -> Any:
        """
        Store a new pending subscription from checkout input.

        Raises:
            SubscriptionValidationError: If the input is incomplete
        """
        fields = prepare_create_fields(data)
        subscription_id = await self.store.create_document(fields)
        self.get_logger().info(
            f"Subscription {subscription_id} created for customer {fields['customer_id']}"
        )
        return subscription_id

    async def update_status(self, subscription_id: Any, update: StatusUpdate) -> SubscriptionRecord:
        """
        Apply a staff status change.

        An unknown status is treated as pending. Moving to cancelled runs
        the cancellation saga; moving to approved announces the approval
        through the subscription_approved signal after the write.

        Raises:
            SubscriptionNotFoundError: If the id does not exist
            InvalidStateTransitionError: If the change is not allowed
            StaleRecordError: If the subscription changed concurrently
        """
        record = await self.get(subscription_id)
        target = update.status
        if not is_valid_status(target):
            self.get_logger().warning(
                f"Unknown status {target!r} for subscription {record.id}; using pending"
            )
            target = SubscriptionStatus.PENDING

        review_fields = {
            "status_note": to_optional_text(update.note),
            "reviewed_by": to_optional_text(update.reviewed_by),
            "reviewed_by_name": to_optional_text(update.reviewed_by_name),
        }

        if target == SubscriptionStatus.CANCELLED:
            await self._cancel(record, review_fields)
            return await self.get(subscription_id)

        self._check_transition(record, target)
        fields = {**review_fields, "status": target, "reviewed_at": self.clock()}
        await self.store.update_document(record.id, fields, expected_version=record.version)
        updated = await self.get(subscription_id)

        if target != record.status:
            self.get_logger().info(f"Subscription {record.id} moved {record.status} -> {target}")
            if target == SubscriptionStatus.APPROVED:
                await self._announce_approval(updated)
        return updated

    async def cancel(
        self,
        subscription_id: Any,
        processed_by_id: Any = None,
        processed_by_name: str | None = None,
        note: str | None = None,
    ) -> RefundInfo | None:
        """
        Cancel a subscription and refund the unused value to the wallet.

        Returns:
            The refund written for this cancellation, or the stored refund
            when the subscription was already cancelled

        Raises:
            SubscriptionNotFoundError: If the id does not exist
            InvalidStateTransitionError: If the subscription was rejected
            StaleRecordError: If the subscription changed concurrently
            WalletNotFoundError / ExternalServiceError: From the wallet
        """
        record = await self.get(subscription_id)
        return await self._cancel(
            record,
            {
                "status_note": to_optional_text(note),
                "reviewed_by": to_optional_text(processed_by_id),
                "reviewed_by_name": to_optional_text(processed_by_name),
            },
        )

    async def update(self, subscription_id: Any, partial: Mapping[str, Any]) -> SubscriptionRecord:
        """
        General partial update.

        refund_info and cancelled_at are ignored. An invalid status is
        dropped; a valid one follows the state machine, with cancelled
        running the cancellation saga. paused_meals runs the paused-meal
        saga and is only accepted on approved subscriptions.

        Raises:
            SubscriptionValidationError: On unknown fields, bad dates, or
                paused meals on a subscription that is not approved
            InvalidStateTransitionError: If the status change is not allowed
            StaleRecordError: If the subscription changed concurrently
        """
        logger = self.get_logger()
        record = await self.get(subscription_id)

        partial = {k: v for k, v in partial.items() if k not in WRITE_ONCE_FIELDS}
        unknown = sorted(set(partial) - UPDATABLE_FIELDS)
        if unknown:
            raise SubscriptionValidationError(
                "Unknown fields in subscription update",
                details={"fields": unknown},
            )

        target = None
        if "status" in partial:
            raw_status = partial["status"]
            if is_valid_status(raw_status):
                target = raw_status
            else:
                logger.warning(f"Dropping invalid status {raw_status!r} from update of {record.id}")

        fields = prepare_update_fields(partial)

        if target is not None and target != record.status:
            if target == SubscriptionStatus.CANCELLED:
                if "paused_meals" in partial:
                    raise SubscriptionValidationError(
                        "Paused meals can not change while cancelling",
                        details={"fields": ["paused_meals"]},
                    )
                await self._cancel(record, fields)
                return await self.get(subscription_id)
            self._check_transition(record, target)
            fields["status"] = target

        delta = Decimal("0")
        if "paused_meals" in partial:
            if record.status != SubscriptionStatus.APPROVED:
                raise SubscriptionValidationError(
                    "Meals can only be paused on approved subscriptions",
                    details={"status": record.status},
                )
            incoming = normalize_paused_meals(partial["paused_meals"])
            delta = self.reconciler.reconcile(record.paused_meals, incoming, record)
            fields["paused_meals"] = paused_meals_to_json(incoming)

        if not fields:
            return record

        await self._write_with_compensation(record, delta, fields)
        updated = await self.get(subscription_id)
        if fields.get("status") == SubscriptionStatus.APPROVED:
            await self._announce_approval(updated)
        return updated

    # =========================================================================
    # Saga steps
    # =========================================================================

    async def _cancel(
        self,
        record: SubscriptionRecord,
        extra_fields: Mapping[str, Any],
    ) -> RefundInfo | None:
        logger = self.get_logger()
        if record.is_cancelled:
            logger.info(f"Subscription {record.id} already cancelled; returning stored refund")
            return record.refund_info

        self._check_transition(record, SubscriptionStatus.CANCELLED)

        now = self.clock()
        info = await self.calculator.compute_refund(record, now)
        info = dataclasses.replace(
            info,
            processed_at=now,
            processed_by_id=extra_fields.get("reviewed_by"),
            processed_by_name=extra_fields.get("reviewed_by_name"),
        )

        fields = {
            **extra_fields,
            "status": SubscriptionStatus.CANCELLED,
            "refund_info": refund_info_to_json(info),
            "cancelled_at": now,
            "reviewed_at": now,
        }
        delta = info.amount if info.credits_wallet else Decimal("0")
        await self._write_with_compensation(record, delta, fields)

        logger.info(
            f"Subscription {record.id} cancelled: refund {info.amount} {info.currency} "
            f"({info.percent_applied}% of {info.remaining_amount})"
        )
        return info

    async def _write_with_compensation(
        self,
        record: SubscriptionRecord,
        delta: Decimal,
        fields: Mapping[str, Any],
    ) -> None:
        logger = self.get_logger()
        applied = Decimal("0")
        if delta and record.customer_id:
            applied = await self.adjuster.adjust(record.customer_id, delta)
        elif delta:
            logger.warning(f"Subscription {record.id} has no customer; wallet delta {delta} skipped")

        try:
            await self.store.update_document(record.id, fields, expected_version=record.version)
        except (Exception, asyncio.CancelledError) as exc:
            if applied:
                logger.error(
                    f"Write of subscription {record.id} failed after wallet adjustment "
                    f"of {applied} for customer {record.customer_id}: {exc!r}"
                )
                # Cancellation of the caller must not interrupt the refund reversal
                await asyncio.shield(self._compensate(record, applied))
            raise

    async def _compensate(self, record: SubscriptionRecord, applied: Decimal) -> None:
        logger = self.get_logger()
        try:
            await self.adjuster.compensate(record.customer_id, applied)
        except Exception:
            logger.critical(
                f"Compensation failed for subscription {record.id}: wallet of customer "
                f"{record.customer_id} still carries delta {applied} that no document "
                f"records; manual reconciliation required",
                exc_info=True,
            )
        else:
            logger.warning(
                f"Compensated wallet of customer {record.customer_id} by {-applied} "
                f"for subscription {record.id}"
            )

    async def _announce_approval(self, record: SubscriptionRecord) -> None:
        responses = await subscription_approved.asend_robust(
            sender=self.__class__, subscription=record
        )
        for receiver, response in responses:
            if isinstance(response, Exception):
                self.get_logger().error(
                    f"Approval handler {getattr(receiver, '__name__', receiver)} failed for "
                    f"subscription {record.id}: {response}"
                )

    @staticmethod
    def _check_transition(record: SubscriptionRecord, target: str) -> None:
        if not can_change_status(record.status, target):
            raise InvalidStateTransitionError(
                f"Cannot move subscription {record.id} from '{record.status}' to '{target}'",
                details={
                    "subscription_id": str(record.id),
                    "current_status": str(record.status),
                    "target_status": str(target),
                },
            )
