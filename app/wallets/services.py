"""
Wallet service layer.

Two services live here:

    WalletLedgerAdjuster
        The saga participant. Applies a signed coin delta through any
        WalletStore and exposes the negated delta as the compensation.
        No retries: a failed adjustment propagates to the caller so the
        subscription write is never attempted.

    WalletService
        Provisioning and staff operations on the Django-backed wallet:
        ensure_wallet, add_coins, reduce_coins, set_coins.

Usage:
    from wallets.services import WalletLedgerAdjuster, WalletService
    from wallets.stores import DjangoWalletStore

    adjuster = WalletLedgerAdjuster(DjangoWalletStore())
    await adjuster.adjust(customer_id, Decimal("300.00"))
    ...
    await adjuster.compensate(customer_id, Decimal("300.00"))  # -300.00

    wallet = WalletService.ensure_wallet(user)
    await WalletService.add_coins(user.id, Decimal("50"))
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from core.exceptions import ValidationError
from core.helpers import round_currency, to_decimal
from core.services import BaseService

from .exceptions import InsufficientCoinsError
from .models import Wallet
from .stores import DjangoWalletStore

if TYPE_CHECKING:
    from typing import Any

    from .protocols import WalletStore


class WalletLedgerAdjuster(BaseService):
    """
    Applies signed coin deltas to customer wallets.

    Positive deltas credit (refunds, newly paused meals), negative deltas
    debit (resumed meals). Zero deltas are skipped without touching the
    store.
    """

    def __init__(self, store: WalletStore):
        self.store = store

    async def adjust(self, customer_id: Any, delta: Decimal) -> Decimal:
        """
        Apply a signed delta to the customer's wallet.

        Args:
            customer_id: Owner of the wallet
            delta: Signed coin amount

        Returns:
            The delta actually applied (rounded to two places)

        Raises:
            WalletNotFoundError: If the customer has no wallet
            ExternalServiceError: If the store is unavailable
        """
        delta = round_currency(delta)
        if delta == 0:
            return delta

        await self.store.increment_wallet_balance(customer_id, delta)
        self.get_logger().info(f"Wallet of customer {customer_id} adjusted by {delta}")
        return delta

    async def compensate(self, customer_id: Any, delta: Decimal) -> Decimal:
        """Undo a previous adjust() by applying the negated delta."""
        return await self.adjust(customer_id, -round_currency(delta))


class WalletService(BaseService):
    """
    Provisioning and staff operations on customer wallets.

    All methods are classmethods - no instance state is maintained. Coin
    changes go through DjangoWalletStore so they are relative increments.
    """

    store = DjangoWalletStore()

    @staticmethod
    def ensure_wallet(user) -> Wallet:
        """
        Get the user's wallet, creating an empty one if missing.

        Args:
            user: The owning user instance

        Returns:
            The existing or newly created Wallet
        """
        wallet, _ = Wallet.objects.get_or_create(customer=user)
        return wallet

    @staticmethod
    def _positive_amount(amount: Any) -> Decimal:
        value = round_currency(to_decimal(amount))
        if value <= 0:
            raise ValidationError(
                f"Coin amount must be positive, got {amount!r}",
                error_code="INVALID_COIN_AMOUNT",
                details={"amount": str(amount)},
            )
        return value

    @classmethod
    async def add_coins(cls, customer_id: Any, amount: Any) -> Decimal:
        """
        Credit coins to a wallet.

        Raises:
            ValidationError: If amount is not a positive number
            WalletNotFoundError: If the customer has no wallet
        """
        value = cls._positive_amount(amount)
        await cls.store.increment_wallet_balance(customer_id, value)
        cls.get_logger().info(f"Added {value} coins to wallet of customer {customer_id}")
        return await cls.store.get_balance(customer_id)

    @classmethod
    async def reduce_coins(cls, customer_id: Any, amount: Any) -> Decimal:
        """
        Debit coins from a wallet without letting the balance go negative.

        Raises:
            ValidationError: If amount is not a positive number
            InsufficientCoinsError: If the balance does not cover the amount
            WalletNotFoundError: If the customer has no wallet
        """
        value = cls._positive_amount(amount)
        if not await cls.store.decrement_if_sufficient(customer_id, value):
            available = await cls.store.get_balance(customer_id)
            raise InsufficientCoinsError(customer_id, required=value, available=available)
        cls.get_logger().info(f"Reduced wallet of customer {customer_id} by {value} coins")
        return await cls.store.get_balance(customer_id)

    @classmethod
    async def set_coins(cls, customer_id: Any, amount: Any) -> Decimal:
        """
        Overwrite a wallet balance.

        Raises:
            ValidationError: If amount is negative or not a number
            WalletNotFoundError: If the customer has no wallet
        """
        value = round_currency(to_decimal(amount, default=Decimal("-1")))
        if value < 0:
            raise ValidationError(
                f"Coin balance cannot be negative, got {amount!r}",
                error_code="INVALID_COIN_AMOUNT",
                details={"amount": str(amount)},
            )
        await cls.store.set_balance(customer_id, value)
        cls.get_logger().warning(f"Wallet of customer {customer_id} set to {value} coins")
        return value
