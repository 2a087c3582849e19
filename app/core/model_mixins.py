"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel. They are generic infrastructure classes with no domain-specific
logic.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class RefundPolicy(UUIDPrimaryKeyMixin, BaseModel):
        name = models.CharField(max_length=200)

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Benefits:
        - Non-guessable IDs
        - Can be generated client-side before database insert
        - Identifiers stay stable when records move between stores

    Fields:
        id: UUIDField as primary key (auto-generated)

    Usage:
        class Wallet(UUIDPrimaryKeyMixin, BaseModel):
            coins = models.DecimalField(max_digits=12, decimal_places=2)

        wallet = Wallet.objects.create(customer=user)
        print(wallet.id)  # UUID like: 550e8400-e29b-41d4-a716-446655440000
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
