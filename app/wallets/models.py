"""
Wallet model for customer coin balances.

Usage:
    from wallets.models import Wallet

    wallet = Wallet.objects.get(customer=user)
    print(wallet.coins)  # Decimal("150.00")

Note:
    Do not call wallet.save() to change coins. Balance changes go through
    wallets.stores.DjangoWalletStore, which issues a relative UPDATE so
    concurrent refunds, pauses and top-ups cannot overwrite each other.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class Wallet(UUIDPrimaryKeyMixin, BaseModel):
    """
    A customer's coin wallet.

    Fields:
        id: UUID primary key (from UUIDPrimaryKeyMixin)
        customer: Owning user (one wallet per user)
        coins: Current balance, two decimal places (1 coin = 1 currency unit)
        created_at/updated_at: Timestamps (from BaseModel)
    """

    customer = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="wallet",
        help_text="Customer who owns this wallet",
    )

    coins = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Coin balance; change only through relative increments",
    )

    class Meta:
        db_table = "wallets_wallet"
        ordering = ["-created_at"]
        verbose_name = "wallet"
        verbose_name_plural = "wallets"

    def __str__(self) -> str:
        return f"Wallet(customer={self.customer_id}, coins={self.coins})"
