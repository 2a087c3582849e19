"""
Store boundary: raw documents <-> typed records.

Subscription documents keep their nested parts (selections, summary,
paused meals, refund info) as JSON, and policies come from whatever
catalog is configured. Everything read from a store passes through the
normalize_* functions here, which are total: unknown or missing values
map to documented defaults and never raise.

Read defaults:
    - Text fields are trimmed; empty optional text becomes None
    - Amounts are Decimal rounded half-up to two places; invalid -> 0
    - Percentages are clamped to [0, 100]
    - Unknown status -> pending, unknown diet preference -> mixed
    - Selections with an unknown meal type or no package id are dropped
    - Paused meals with an invalid date or meal type are dropped,
      duplicates removed, result sorted by date then meal order
    - Summary duration below 1 -> 1
    - Missing start date -> today, missing end date -> start date
    - Refund source is always coins

The *_to_json functions and prepare_* functions go the other way and
produce field values ready for a store write.

Usage:
    from subscriptions.normalization import normalize_subscription

    record = normalize_subscription(document)
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from core.helpers import clamp_percent, round_currency, round_whole, to_decimal

from .exceptions import SubscriptionValidationError
from .states import (
    MEAL_TYPE_ORDER,
    DietPreference,
    MealType,
    RefundSource,
    SubscriptionStatus,
)
from .types import (
    PausedMeal,
    RefundInfo,
    RefundPolicyRecord,
    RefundTierRecord,
    Selection,
    SubscriptionRecord,
    Summary,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any

LOCATION_FIELDS = (
    "delivery_location_id",
    "delivery_location_name",
    "delivery_location_address",
    "delivery_location_coordinates",
    "delivery_location_landmark",
    "delivery_location_contact_name",
    "delivery_location_contact_phone",
)

OPTIONAL_TEXT_FIELDS = (
    "customer_short_id",
    "customer_phone",
    "notes",
    "status_note",
    "reviewed_by",
    "reviewed_by_name",
) + LOCATION_FIELDS

# Fields a general update may carry. refund_info and cancelled_at are
# stripped before this check; they are only ever written by cancellation.
UPDATABLE_FIELDS = frozenset(
    OPTIONAL_TEXT_FIELDS
    + (
        "customer_name",
        "customer_email",
        "diet_preference",
        "start_date",
        "end_date",
        "status",
        "paused_meals",
    )
)

WRITE_ONCE_FIELDS = frozenset({"refund_info", "cancelled_at"})

CREATE_FIELDS = frozenset(
    LOCATION_FIELDS
    + (
        "customer_id",
        "customer_short_id",
        "customer_name",
        "customer_email",
        "customer_phone",
        "category_id",
        "category_name",
        "diet_preference",
        "duration_days",
        "start_date",
        "end_date",
        "selections",
        "summary",
        "notes",
    )
)


# =============================================================================
# Scalar coercion
# =============================================================================


def _field(item: Any, name: str) -> Any:
    """Read a key from a mapping or an attribute from a record."""
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def to_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def to_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def to_int(value: Any, default: int | None = 0) -> int | None:
    """Coerce to int, rounding half-up. Invalid input yields default."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value
    number = to_decimal(value, default=Decimal("NaN"))
    if not number.is_finite():
        return default
    return int(round_whole(number))


def to_amount(value: Any) -> Decimal:
    return round_currency(to_decimal(value))


def to_percent(value: Any) -> Decimal:
    return round_currency(clamp_percent(to_decimal(value)))


def to_date(value: Any) -> datetime.date | None:
    """
    Coerce to a calendar day.

    Aware datetimes are converted to the configured time zone first so
    the day matches what the customer saw.
    """
    if isinstance(value, datetime.datetime):
        if timezone.is_aware(value):
            return timezone.localdate(value)
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            parsed = parse_date(text)
            if parsed is not None:
                return parsed
            moment = parse_datetime(text)
        except ValueError:
            return None
        return to_date(moment) if moment is not None else None
    return None


def to_datetime(value: Any) -> datetime.datetime | None:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, str):
        try:
            return parse_datetime(value.strip())
        except ValueError:
            return None
    return None


# =============================================================================
# Enumerations
# =============================================================================


def is_valid_status(value: Any) -> bool:
    return isinstance(value, str) and value in SubscriptionStatus.values


def normalize_status(value: Any) -> str:
    return value if is_valid_status(value) else SubscriptionStatus.PENDING


def normalize_diet_preference(value: Any) -> str:
    if value == DietPreference.PURE_VEG:
        return DietPreference.PURE_VEG
    return DietPreference.MIXED


def normalize_refund_source(value: Any) -> str:
    return RefundSource.COINS


def _is_meal_type(value: Any) -> bool:
    return isinstance(value, str) and value in MealType.values


# =============================================================================
# Nested parts
# =============================================================================


def normalize_selections(raw: Any) -> tuple[Selection, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()

    selections = []
    for item in raw:
        meal_type = _field(item, "meal_type")
        package_id = to_optional_text(_field(item, "package_id"))
        if not _is_meal_type(meal_type) or not package_id:
            continue
        selections.append(
            Selection(
                meal_type=meal_type,
                package_id=package_id,
                package_name=to_text(_field(item, "package_name")),
                price_per_day=to_amount(_field(item, "price_per_day")),
                total_price=to_amount(_field(item, "total_price")),
            )
        )
    return tuple(selections)


def normalize_summary(raw: Any) -> Summary:
    raw = raw if raw is not None else {}
    duration_days = to_int(_field(raw, "duration_days"), default=1)
    coupon_code = to_optional_text(_field(raw, "coupon_code"))

    return Summary(
        duration_days=duration_days if duration_days > 0 else 1,
        subtotal=to_amount(_field(raw, "subtotal")),
        discount_percent=to_percent(_field(raw, "discount_percent")),
        discount_amount=to_amount(_field(raw, "discount_amount")),
        coupon_code=coupon_code.upper() if coupon_code else None,
        coupon_discount_amount=to_amount(_field(raw, "coupon_discount_amount")),
        total_payable=to_amount(_field(raw, "total_payable")),
    )


def sort_paused_meals(meals: Iterable[PausedMeal]) -> tuple[PausedMeal, ...]:
    return tuple(sorted(meals, key=lambda m: (m.date, MEAL_TYPE_ORDER[m.meal_type])))


def normalize_paused_meals(raw: Any) -> tuple[PausedMeal, ...]:
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return ()

    seen: dict[str, PausedMeal] = {}
    for item in raw:
        meal_type = _field(item, "meal_type")
        day = to_date(_field(item, "date"))
        if day is None or not _is_meal_type(meal_type):
            continue
        meal = PausedMeal(date=day, meal_type=meal_type)
        seen.setdefault(meal.key, meal)
    return sort_paused_meals(seen.values())


def normalize_refund_info(raw: Any) -> RefundInfo | None:
    if not isinstance(raw, Mapping):
        return None

    remaining_days = to_int(raw.get("remaining_days"), default=0)
    return RefundInfo(
        amount=to_amount(raw.get("amount")),
        currency=to_optional_text(raw.get("currency")) or settings.SUBSCRIPTION_CURRENCY,
        percent_applied=to_percent(raw.get("percent_applied")),
        source=normalize_refund_source(raw.get("source")),
        remaining_amount=to_amount(raw.get("remaining_amount")),
        remaining_days=max(0, remaining_days),
        tier_label=to_optional_text(raw.get("tier_label")),
        notes=to_optional_text(raw.get("notes")),
        processed_at=to_datetime(raw.get("processed_at")),
        processed_by_id=to_optional_text(raw.get("processed_by_id")),
        processed_by_name=to_optional_text(raw.get("processed_by_name")),
    )


def _id_list(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(text for text in (to_optional_text(v) for v in raw) if text)


def normalize_tier(raw: Any) -> RefundTierRecord:
    end_day = _field(raw, "end_day")
    return RefundTierRecord(
        start_day=max(0, to_int(_field(raw, "start_day"), default=0)),
        end_day=None if end_day is None else to_int(end_day, default=None),
        refund_percent=to_percent(_field(raw, "refund_percent")),
        refund_source=normalize_refund_source(_field(raw, "refund_source")),
        label=to_optional_text(_field(raw, "label")),
        notes=to_optional_text(_field(raw, "notes")),
    )


def normalize_policy(raw: Any) -> RefundPolicyRecord:
    tiers = _field(raw, "tiers")
    return RefundPolicyRecord(
        id=_field(raw, "id"),
        name=to_text(_field(raw, "name")),
        description=to_optional_text(_field(raw, "description")),
        subscription_length_days=max(
            0, to_int(_field(raw, "subscription_length_days"), default=0)
        ),
        category_ids=_id_list(_field(raw, "category_ids")),
        product_ids=_id_list(_field(raw, "product_ids")),
        active=_field(raw, "active") is not False,
        tiers=tuple(normalize_tier(t) for t in tiers) if isinstance(tiers, (list, tuple)) else (),
    )


# =============================================================================
# Subscription documents
# =============================================================================


def normalize_subscription(document: Mapping[str, Any]) -> SubscriptionRecord:
    """
    Map a stored subscription document to a SubscriptionRecord.

    duration_days keeps a stored non-negative value as is so malformed
    zero-length plans reach the calculator's zero-refund guard; an
    invalid value falls back to the summary's duration.
    """
    summary = normalize_summary(document.get("summary"))
    duration_days = to_int(document.get("duration_days"), default=-1)
    if duration_days < 0:
        duration_days = summary.duration_days

    start_date = to_date(document.get("start_date")) or timezone.localdate()
    end_date = to_date(document.get("end_date")) or start_date
    version = to_int(document.get("version"), default=1)

    return SubscriptionRecord(
        id=document.get("id"),
        customer_id=document.get("customer_id"),
        customer_short_id=to_optional_text(document.get("customer_short_id")),
        customer_name=to_text(document.get("customer_name")),
        customer_email=to_optional_text(document.get("customer_email")),
        customer_phone=to_optional_text(document.get("customer_phone")),
        category_id=to_text(document.get("category_id")),
        category_name=to_text(document.get("category_name")),
        diet_preference=normalize_diet_preference(document.get("diet_preference")),
        duration_days=duration_days,
        start_date=start_date,
        end_date=end_date,
        selections=normalize_selections(document.get("selections")),
        summary=summary,
        status=normalize_status(document.get("status")),
        paused_meals=normalize_paused_meals(document.get("paused_meals")),
        refund_info=normalize_refund_info(document.get("refund_info")),
        cancelled_at=to_datetime(document.get("cancelled_at")),
        notes=to_optional_text(document.get("notes")),
        status_note=to_optional_text(document.get("status_note")),
        reviewed_by=to_optional_text(document.get("reviewed_by")),
        reviewed_by_name=to_optional_text(document.get("reviewed_by_name")),
        reviewed_at=to_datetime(document.get("reviewed_at")),
        version=max(1, version),
        created_at=to_datetime(document.get("created_at")),
        updated_at=to_datetime(document.get("updated_at")),
        **{name: to_optional_text(document.get(name)) for name in LOCATION_FIELDS},
    )


# =============================================================================
# Serialization for writes
# =============================================================================


def selections_to_json(selections: Iterable[Selection]) -> list[dict[str, Any]]:
    return [
        {
            "meal_type": s.meal_type,
            "package_id": s.package_id,
            "package_name": s.package_name,
            "price_per_day": str(s.price_per_day),
            "total_price": str(s.total_price),
        }
        for s in selections
    ]


def summary_to_json(summary: Summary) -> dict[str, Any]:
    return {
        "duration_days": summary.duration_days,
        "subtotal": str(summary.subtotal),
        "discount_percent": str(summary.discount_percent),
        "discount_amount": str(summary.discount_amount),
        "coupon_code": summary.coupon_code,
        "coupon_discount_amount": str(summary.coupon_discount_amount),
        "total_payable": str(summary.total_payable),
    }


def paused_meals_to_json(meals: Iterable[PausedMeal]) -> list[dict[str, str]]:
    return [{"date": m.date.isoformat(), "meal_type": m.meal_type} for m in sort_paused_meals(meals)]


def refund_info_to_json(info: RefundInfo) -> dict[str, Any]:
    return {
        "amount": str(round_currency(info.amount)),
        "currency": info.currency,
        "percent_applied": str(info.percent_applied),
        "source": normalize_refund_source(info.source),
        "remaining_amount": str(round_currency(info.remaining_amount)),
        "remaining_days": info.remaining_days,
        "tier_label": info.tier_label,
        "notes": info.notes,
        "processed_at": info.processed_at.isoformat() if info.processed_at else None,
        "processed_by_id": info.processed_by_id,
        "processed_by_name": info.processed_by_name,
    }


def _email(value: Any) -> str | None:
    email = to_optional_text(value)
    return email.lower() if email else None


def prepare_create_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    """
    Validate checkout input and build the fields of a new document.

    New subscriptions always start pending with no paused meals.

    Raises:
        SubscriptionValidationError: On unknown keys, or when the
            customer or start date is missing
    """
    unknown = sorted(set(data) - CREATE_FIELDS)
    if unknown:
        raise SubscriptionValidationError(
            "Unknown fields in subscription checkout",
            details={"fields": unknown},
        )

    customer_id = data.get("customer_id")
    if customer_id in (None, ""):
        raise SubscriptionValidationError(
            "customer_id is required", details={"fields": ["customer_id"]}
        )

    start_date = to_date(data.get("start_date"))
    if start_date is None:
        raise SubscriptionValidationError(
            "A valid start_date is required", details={"fields": ["start_date"]}
        )

    duration_days = max(1, to_int(data.get("duration_days"), default=1))
    end_date = to_date(data.get("end_date")) or (
        start_date + datetime.timedelta(days=duration_days - 1)
    )

    fields = {
        "customer_id": customer_id,
        "customer_short_id": to_optional_text(data.get("customer_short_id")),
        "customer_name": to_text(data.get("customer_name")),
        "customer_email": _email(data.get("customer_email")),
        "customer_phone": to_optional_text(data.get("customer_phone")),
        "category_id": to_text(data.get("category_id")),
        "category_name": to_text(data.get("category_name")),
        "diet_preference": normalize_diet_preference(data.get("diet_preference")),
        "duration_days": duration_days,
        "start_date": start_date,
        "end_date": end_date,
        "selections": selections_to_json(normalize_selections(data.get("selections"))),
        "summary": summary_to_json(normalize_summary(data.get("summary"))),
        "status": SubscriptionStatus.PENDING,
        "paused_meals": [],
        "notes": to_optional_text(data.get("notes")),
    }
    fields.update({name: to_optional_text(data.get(name)) for name in LOCATION_FIELDS})
    return fields


def prepare_update_fields(partial: Mapping[str, Any]) -> dict[str, Any]:
    """
    Clean the plain fields of an update partial.

    status and paused_meals are left out; the lifecycle coordinator
    handles them because they can move money. Callers must have removed
    the write-once fields and checked for unknown keys already.

    Raises:
        SubscriptionValidationError: If a date field cannot be parsed
    """
    fields: dict[str, Any] = {}
    for name, value in partial.items():
        if name in ("status", "paused_meals"):
            continue
        if name in OPTIONAL_TEXT_FIELDS:
            fields[name] = to_optional_text(value)
        elif name == "customer_email":
            fields[name] = _email(value)
        elif name == "customer_name":
            fields[name] = to_text(value)
        elif name == "diet_preference":
            fields[name] = normalize_diet_preference(value)
        elif name in ("start_date", "end_date"):
            day = to_date(value)
            if day is None:
                raise SubscriptionValidationError(
                    f"Invalid date for {name}", details={"fields": [name]}
                )
            fields[name] = day
    return fields
