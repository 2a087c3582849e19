"""
Wallet-specific exceptions.

Exception Hierarchy:
    WalletError (base, BaseApplicationError)
    ├── WalletNotFoundError - No wallet exists for the customer
    └── InsufficientCoinsError - A reduction would take the balance below zero

Usage:
    from wallets.exceptions import WalletNotFoundError

    raise WalletNotFoundError(customer_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, NotFoundError

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any


class WalletError(BaseApplicationError):
    """
    Base exception for all wallet operations.

    Example:
        try:
            await adjuster.adjust(customer_id, Decimal("100"))
        except WalletError as e:
            logger.error(f"Wallet operation failed: {e}")
    """

    default_error_code: str = "WALLET_ERROR"


class WalletNotFoundError(WalletError, NotFoundError):
    """
    Raised when the customer has no wallet.

    Wallets are created for every user on signup, so this normally means
    the customer id is wrong or the wallet row was removed out of band.
    """

    default_error_code: str = "WALLET_NOT_FOUND"

    def __init__(self, customer_id: Any, error_code: str | None = None):
        self.customer_id = customer_id
        super().__init__(
            f"Wallet for customer {customer_id} not found",
            error_code=error_code,
            details={"customer_id": str(customer_id)},
        )


class InsufficientCoinsError(WalletError):
    """
    Raised when a staff reduction exceeds the available balance.

    Attributes:
        customer_id: Owner of the wallet
        required: Coins the reduction asked for
        available: Coins currently in the wallet
    """

    default_error_code: str = "INSUFFICIENT_COINS"

    def __init__(
        self,
        customer_id: Any,
        required: Decimal,
        available: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.customer_id = customer_id
        self.required = required
        self.available = available

        full_details = {
            "customer_id": str(customer_id),
            "required": str(required),
            "available": str(available),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=(
                f"Wallet of customer {customer_id} has insufficient coins: "
                f"required {required}, available {available}"
            ),
            error_code=error_code,
            details=full_details,
        )
