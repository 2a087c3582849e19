import uuid
from decimal import Decimal

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
        (
            "id",
            models.UUIDField(
                default=uuid.uuid4,
                editable=False,
                help_text="Unique identifier for this record",
                primary_key=True,
                serialize=False,
            ),
        ),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="RefundPolicy",
            fields=timestamps()
            + [
                ("name", models.CharField(help_text="Display name of the policy", max_length=200)),
                (
                    "description",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Shown as refund notes when the tier has none",
                    ),
                ),
                (
                    "subscription_length_days",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Plan length in days this policy applies to (0 = any length)",
                    ),
                ),
                (
                    "applies_to_category_ids",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Category ids this policy is limited to (empty = all)",
                    ),
                ),
                (
                    "applies_to_product_ids",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Package ids this policy is limited to (empty = all)",
                    ),
                ),
                (
                    "active",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Whether this policy is considered for cancellations",
                    ),
                ),
            ],
            options={
                "verbose_name": "refund policy",
                "verbose_name_plural": "refund policies",
                "db_table": "subscriptions_refund_policy",
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="RefundTier",
            fields=timestamps()
            + [
                (
                    "start_day",
                    models.PositiveIntegerField(
                        default=0, help_text="First elapsed day covered by this tier"
                    ),
                ),
                (
                    "end_day",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Last elapsed day covered by this tier (empty = open ended)",
                        null=True,
                    ),
                ),
                (
                    "refund_percent",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Percentage of the remaining value refunded",
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                    ),
                ),
                (
                    "refund_source",
                    models.CharField(
                        choices=[("coins", "Coins")],
                        default="coins",
                        help_text="Where the refund is paid to",
                        max_length=20,
                    ),
                ),
                ("label", models.CharField(blank=True, default="", max_length=200)),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "policy",
                    models.ForeignKey(
                        help_text="Policy this tier belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tiers",
                        to="subscriptions.refundpolicy",
                    ),
                ),
            ],
            options={
                "verbose_name": "refund tier",
                "verbose_name_plural": "refund tiers",
                "db_table": "subscriptions_refund_tier",
                "ordering": ["start_day"],
            },
        ),
        migrations.CreateModel(
            name="SubscriptionRequest",
            fields=timestamps()
            + [
                ("customer_short_id", models.CharField(blank=True, max_length=50, null=True)),
                ("customer_name", models.CharField(blank=True, default="", max_length=200)),
                ("customer_email", models.EmailField(blank=True, max_length=254, null=True)),
                ("customer_phone", models.CharField(blank=True, max_length=30, null=True)),
                (
                    "category_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Meal category id from the product catalog",
                        max_length=100,
                    ),
                ),
                ("category_name", models.CharField(blank=True, default="", max_length=200)),
                (
                    "diet_preference",
                    models.CharField(
                        choices=[("mixed", "Mixed"), ("pure-veg", "Pure veg")],
                        default="mixed",
                        max_length=20,
                    ),
                ),
                (
                    "duration_days",
                    models.PositiveIntegerField(default=1, help_text="Plan length in days"),
                ),
                ("start_date", models.DateField(help_text="First delivery day")),
                ("end_date", models.DateField(help_text="Last delivery day")),
                (
                    "selections",
                    models.JSONField(
                        blank=True,
                        default=list,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Meal type to package selections",
                    ),
                ),
                (
                    "summary",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Checkout totals",
                    ),
                ),
                (
                    "paused_meals",
                    models.JSONField(
                        blank=True,
                        default=list,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Skipped (date, meal type) pairs",
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current lifecycle status",
                        max_length=50,
                    ),
                ),
                ("status_note", models.TextField(blank=True, null=True)),
                ("reviewed_by", models.CharField(blank=True, max_length=100, null=True)),
                ("reviewed_by_name", models.CharField(blank=True, max_length=200, null=True)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "refund_info",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        help_text="Refund computed on cancellation; written once",
                        null=True,
                    ),
                ),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, null=True)),
                ("delivery_location_id", models.CharField(blank=True, max_length=100, null=True)),
                ("delivery_location_name", models.CharField(blank=True, max_length=200, null=True)),
                ("delivery_location_address", models.TextField(blank=True, null=True)),
                (
                    "delivery_location_coordinates",
                    models.CharField(blank=True, max_length=100, null=True),
                ),
                (
                    "delivery_location_landmark",
                    models.CharField(blank=True, max_length=200, null=True),
                ),
                (
                    "delivery_location_contact_name",
                    models.CharField(blank=True, max_length=200, null=True),
                ),
                (
                    "delivery_location_contact_phone",
                    models.CharField(blank=True, max_length=30, null=True),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each write",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        help_text="Customer who bought this plan",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscription_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "subscription request",
                "verbose_name_plural": "subscription requests",
                "db_table": "subscriptions_subscription_request",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["customer", "status"], name="subscr_customer_status_idx"
                    )
                ],
            },
        ),
    ]
