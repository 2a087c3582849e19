"""
Subscription and refund policy models.

Models:
    RefundPolicy: Admin-configured refund rule scoped by plan length,
        category and packages
    RefundTier: Day range of a policy carrying a refund percentage
    SubscriptionRequest: A customer's purchased meal plan

Usage:
    from subscriptions.models import RefundPolicy, RefundTier

    policy = RefundPolicy.objects.create(name="30 day plans", subscription_length_days=30)
    RefundTier.objects.create(policy=policy, start_day=0, end_day=10, refund_percent=75)

Note:
    The service layer never works with these model instances directly. Stores in
    subscriptions.stores turn rows into typed records, and all subscription
    writes go through conditional single-row updates on the version field.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone

from django_fsm import FSMField, can_proceed, transition

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from .states import DietPreference, RefundSource, SubscriptionStatus


class RefundPolicy(UUIDPrimaryKeyMixin, BaseModel):
    """
    A refund rule for subscriptions matching its scope.

    Fields:
        name: Display name (also the fallback tier label on refunds)
        description: Free text (fallback refund notes)
        subscription_length_days: Plan length this policy covers; 0 = any
        applies_to_category_ids: Category allowlist; empty = all categories
        applies_to_product_ids: Package allowlist; empty = all packages
        active: Inactive policies are ignored by the resolver
    """

    name = models.CharField(
        max_length=200,
        help_text="Display name of the policy",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Shown as refund notes when the tier has none",
    )

    subscription_length_days = models.PositiveIntegerField(
        default=0,
        help_text="Plan length in days this policy applies to (0 = any length)",
    )

    applies_to_category_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Category ids this policy is limited to (empty = all)",
    )

    applies_to_product_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Package ids this policy is limited to (empty = all)",
    )

    active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this policy is considered for cancellations",
    )

    class Meta:
        db_table = "subscriptions_refund_policy"
        ordering = ["created_at"]
        verbose_name = "refund policy"
        verbose_name_plural = "refund policies"

    def __str__(self) -> str:
        length = f"{self.subscription_length_days}d" if self.subscription_length_days else "any"
        return f"RefundPolicy({self.name}, {length})"


class RefundTier(UUIDPrimaryKeyMixin, BaseModel):
    """
    A day range of a refund policy.

    Fields:
        policy: Owning policy
        start_day: First elapsed day covered (inclusive)
        end_day: Last elapsed day covered (inclusive); null = open ended
        refund_percent: Share of the remaining value refunded, 0-100
        refund_source: Where the refund is paid (coins only)
        label: Shown on the refund record
        notes: Shown on the refund record
    """

    policy = models.ForeignKey(
        RefundPolicy,
        on_delete=models.CASCADE,
        related_name="tiers",
        help_text="Policy this tier belongs to",
    )

    start_day = models.PositiveIntegerField(
        default=0,
        help_text="First elapsed day covered by this tier",
    )

    end_day = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Last elapsed day covered by this tier (empty = open ended)",
    )

    refund_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
        help_text="Percentage of the remaining value refunded",
    )

    refund_source = models.CharField(
        max_length=20,
        choices=RefundSource.choices,
        default=RefundSource.COINS,
        help_text="Where the refund is paid to",
    )

    label = models.CharField(max_length=200, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "subscriptions_refund_tier"
        ordering = ["start_day"]
        verbose_name = "refund tier"
        verbose_name_plural = "refund tiers"

    def __str__(self) -> str:
        end = self.end_day if self.end_day is not None else "+"
        return f"RefundTier({self.start_day}-{end}: {self.refund_percent}%)"


class SubscriptionRequest(UUIDPrimaryKeyMixin, BaseModel):
    """
    A customer's purchased meal plan.

    Nested parts are JSON documents written by subscriptions.normalization:
    selections (list), summary (object), paused_meals (list of
    {"date", "meal_type"}) and refund_info (object, set once on
    cancellation).

    Lifecycle:
        1. Created pending at checkout with no paused meals
        2. Staff approve or reject
        3. Approved plans may pause and unpause meals
        4. Pending or approved plans may be cancelled (refund saga)
        Rows are never deleted.

    Note:
        version is the optimistic-locking counter. Service writes use
        queryset updates conditional on it; save() bumps it for any
        ad-hoc instance saves.
        status is an FSMField: the transition methods below define which
        moves are legal, and can_change_status() asks them without saving.
    """

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="subscription_requests",
        help_text="Customer who bought this plan",
    )
    customer_short_id = models.CharField(max_length=50, null=True, blank=True)
    customer_name = models.CharField(max_length=200, blank=True, default="")
    customer_email = models.EmailField(null=True, blank=True)
    customer_phone = models.CharField(max_length=30, null=True, blank=True)

    category_id = models.CharField(
        max_length=100,
        blank=True,
        default="",
        db_index=True,
        help_text="Meal category id from the product catalog",
    )
    category_name = models.CharField(max_length=200, blank=True, default="")

    diet_preference = models.CharField(
        max_length=20,
        choices=DietPreference.choices,
        default=DietPreference.MIXED,
    )

    duration_days = models.PositiveIntegerField(
        default=1,
        help_text="Plan length in days",
    )
    start_date = models.DateField(help_text="First delivery day")
    end_date = models.DateField(help_text="Last delivery day")

    selections = models.JSONField(
        default=list,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Meal type to package selections",
    )
    summary = models.JSONField(
        default=dict,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Checkout totals",
    )
    paused_meals = models.JSONField(
        default=list,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Skipped (date, meal type) pairs",
    )

    status = FSMField(
        default=SubscriptionStatus.PENDING,
        choices=SubscriptionStatus.choices,
        db_index=True,
        help_text="Current lifecycle status",
    )
    status_note = models.TextField(null=True, blank=True)
    reviewed_by = models.CharField(max_length=100, null=True, blank=True)
    reviewed_by_name = models.CharField(max_length=200, null=True, blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)

    refund_info = models.JSONField(
        null=True,
        blank=True,
        encoder=DjangoJSONEncoder,
        help_text="Refund computed on cancellation; written once",
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)

    notes = models.TextField(null=True, blank=True)

    delivery_location_id = models.CharField(max_length=100, null=True, blank=True)
    delivery_location_name = models.CharField(max_length=200, null=True, blank=True)
    delivery_location_address = models.TextField(null=True, blank=True)
    delivery_location_coordinates = models.CharField(max_length=100, null=True, blank=True)
    delivery_location_landmark = models.CharField(max_length=200, null=True, blank=True)
    delivery_location_contact_name = models.CharField(max_length=200, null=True, blank=True)
    delivery_location_contact_phone = models.CharField(max_length=30, null=True, blank=True)

    # Optimistic locking
    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each write",
    )

    class Meta:
        db_table = "subscriptions_subscription_request"
        ordering = ["-created_at"]
        verbose_name = "subscription request"
        verbose_name_plural = "subscription requests"
        indexes = [
            models.Index(fields=["customer", "status"], name="subscr_customer_status_idx"),
        ]

    def __str__(self) -> str:
        return f"SubscriptionRequest({self.pk}, {self.status})"

    def save(self, *args, **kwargs):
        """Save with version auto-increment for optimistic locking."""
        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=SubscriptionStatus.PENDING,
        target=SubscriptionStatus.APPROVED,
    )
    def approve(self):
        """
        Approve a pending subscription.

        Transition: PENDING -> APPROVED
        """
        self.reviewed_at = timezone.now()

    @transition(
        field=status,
        source=SubscriptionStatus.PENDING,
        target=SubscriptionStatus.REJECTED,
    )
    def reject(self):
        """
        Reject a pending subscription.

        Transition: PENDING -> REJECTED
        """
        self.reviewed_at = timezone.now()

    @transition(
        field=status,
        source=[SubscriptionStatus.PENDING, SubscriptionStatus.APPROVED],
        target=SubscriptionStatus.CANCELLED,
    )
    def cancel(self):
        """
        Cancel the subscription.

        Transition: PENDING/APPROVED -> CANCELLED

        Only stamps the cancellation time. Refunds are computed and paid by
        SubscriptionLifecycleCoordinator, which writes the status itself.
        """
        self.cancelled_at = timezone.now()


STATUS_TRANSITION_METHODS: dict[str, str] = {
    SubscriptionStatus.APPROVED: "approve",
    SubscriptionStatus.REJECTED: "reject",
    SubscriptionStatus.CANCELLED: "cancel",
}


def can_change_status(current: str, target: str) -> bool:
    """
    Check whether a subscription may move from current to target status.

    Staying in the same status is allowed unless the subscription is
    cancelled. Any other move must be a declared transition whose source
    includes current.
    """
    if current == target:
        return current != SubscriptionStatus.CANCELLED
    method_name = STATUS_TRANSITION_METHODS.get(target)
    if method_name is None:
        return False
    return can_proceed(getattr(SubscriptionRequest(status=current), method_name))
