"""
Protocol definitions for wallet persistence.

The subscription saga only ever needs one wallet operation: a signed,
relative adjustment of a customer's balance. Keeping that behind a
Protocol lets the saga run against the Django store in production and an
in-memory fake in tests.

Usage:
    from wallets.protocols import WalletStore

    async def refund(store: WalletStore, customer_id, amount):
        await store.increment_wallet_balance(customer_id, amount)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any


@runtime_checkable
class WalletStore(Protocol):
    """
    Protocol for wallet balance stores.

    Implementations must apply the delta relative to the stored value in a
    single atomic operation (never read-modify-write), and must raise
    WalletNotFoundError when the customer has no wallet.
    """

    async def increment_wallet_balance(self, customer_id: Any, delta: Decimal) -> None:
        """
        Add a signed delta to the customer's balance.

        Args:
            customer_id: Owner of the wallet
            delta: Coins to add (negative to remove)

        Raises:
            WalletNotFoundError: If the customer has no wallet
            ExternalServiceError: If the store is unavailable
        """
        ...
