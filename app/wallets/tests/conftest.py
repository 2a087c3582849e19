"""
Pytest fixtures for wallet tests.

Sections:
    - User Fixtures: Customers with auto-provisioned wallets
    - Store Fixtures: Real and in-memory wallet stores
"""

from decimal import Decimal

import pytest

from core.exceptions import ExternalServiceError
from wallets.stores import DjangoWalletStore
from wallets.tests.factories import UserFactory
from wallets.tests.fakes import InMemoryWalletStore


# ==========================================================================
# User Fixtures
# ==========================================================================


@pytest.fixture
def customer(db):
    """A customer whose wallet was created by the signup signal."""
    return UserFactory()


@pytest.fixture
def funded_customer(db):
    """A customer holding 500 coins."""
    user = UserFactory()
    user.wallet.coins = Decimal("500.00")
    user.wallet.save()
    return user


# ==========================================================================
# Store Fixtures
# ==========================================================================


@pytest.fixture
def wallet_store():
    """Django ORM wallet store."""
    return DjangoWalletStore()


@pytest.fixture
def memory_wallet_store():
    """In-memory wallet store holding one empty wallet for customer 'c1'."""
    return InMemoryWalletStore({"c1": Decimal("0.00")})


@pytest.fixture
def unavailable_wallet_store():
    """In-memory wallet store that always fails."""
    store = InMemoryWalletStore({"c1": Decimal("0.00")})
    store.fail_with = ExternalServiceError("wallet store unavailable")
    return store
