"""
Django ORM implementation of the wallet store.

All balance writes are single UPDATE statements with F() expressions:

    UPDATE wallets_wallet SET coins = coins + %s WHERE customer_id = %s

so two concurrent adjustments for the same customer both land. A zero
row count means the wallet does not exist.

Usage:
    from wallets.stores import DjangoWalletStore

    store = DjangoWalletStore()
    await store.increment_wallet_balance(user.id, Decimal("250.00"))
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import DatabaseError
from django.db.models import F
from django.utils import timezone

from core.exceptions import ExternalServiceError
from core.helpers import round_currency

from .exceptions import WalletNotFoundError
from .models import Wallet

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class DjangoWalletStore:
    """
    WalletStore backed by the Wallet model.

    Database errors are re-raised as ExternalServiceError so callers can
    treat every store the same way regardless of backend.
    """

    async def increment_wallet_balance(self, customer_id: Any, delta: Decimal) -> None:
        delta = round_currency(delta)
        try:
            updated = await Wallet.objects.filter(customer_id=customer_id).aupdate(
                coins=F("coins") + delta,
                updated_at=timezone.now(),
            )
        except DatabaseError as e:
            raise ExternalServiceError(
                f"Failed to adjust wallet of customer {customer_id}: {e}",
                details={"customer_id": str(customer_id), "delta": str(delta)},
            ) from e

        if updated == 0:
            raise WalletNotFoundError(customer_id)

        logger.debug(f"Wallet of customer {customer_id} adjusted by {delta}")

    async def decrement_if_sufficient(self, customer_id: Any, amount: Decimal) -> bool:
        """
        Remove coins only when the balance covers them.

        The balance check is part of the UPDATE's WHERE clause, so it cannot
        be invalidated between check and write.

        Returns:
            True if the coins were removed, False if the balance was too low

        Raises:
            WalletNotFoundError: If the customer has no wallet
        """
        amount = round_currency(amount)
        try:
            updated = await Wallet.objects.filter(
                customer_id=customer_id,
                coins__gte=amount,
            ).aupdate(
                coins=F("coins") - amount,
                updated_at=timezone.now(),
            )
        except DatabaseError as e:
            raise ExternalServiceError(
                f"Failed to reduce wallet of customer {customer_id}: {e}",
                details={"customer_id": str(customer_id), "amount": str(amount)},
            ) from e

        if updated:
            return True

        if not await Wallet.objects.filter(customer_id=customer_id).aexists():
            raise WalletNotFoundError(customer_id)
        return False

    async def set_balance(self, customer_id: Any, coins: Decimal) -> None:
        """Overwrite the balance. Staff override only."""
        coins = round_currency(coins)
        try:
            updated = await Wallet.objects.filter(customer_id=customer_id).aupdate(
                coins=coins,
                updated_at=timezone.now(),
            )
        except DatabaseError as e:
            raise ExternalServiceError(
                f"Failed to set wallet of customer {customer_id}: {e}",
                details={"customer_id": str(customer_id), "coins": str(coins)},
            ) from e
        if updated == 0:
            raise WalletNotFoundError(customer_id)

    async def get_balance(self, customer_id: Any) -> Decimal:
        try:
            wallet = await Wallet.objects.aget(customer_id=customer_id)
        except Wallet.DoesNotExist:
            raise WalletNotFoundError(customer_id)
        except DatabaseError as e:
            raise ExternalServiceError(
                f"Failed to read wallet of customer {customer_id}: {e}",
                details={"customer_id": str(customer_id)},
            ) from e
        return Decimal(wallet.coins)
