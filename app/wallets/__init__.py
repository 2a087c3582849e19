"""
Wallets app - customer coin balances.

This app holds one coin wallet per customer. Coins are credited when a
subscription is cancelled with a refund or when meals are paused, and
debited when paused meals are resumed.

Public API (import from the submodules):
    Models:
        wallets.models.Wallet - Coin balance keyed by customer

    Services:
        wallets.services.WalletLedgerAdjuster - Signed relative adjustments
            with an explicit compensation step
        wallets.services.WalletService - Provisioning and staff operations

    Stores:
        wallets.stores.DjangoWalletStore - Atomic F() increments

    Exceptions:
        wallets.exceptions.WalletError and subclasses

Mutation discipline:
    Balances are only ever changed with a single relative UPDATE
    (coins = coins + delta). Nothing in this app reads a balance and
    writes back a computed total, except the explicit staff "set" override.
"""
