"""
Pytest fixtures for subscription tests.

Sections:
    - Fakes: In-memory subscription store, policy catalog, role directory
      (classes in fakes.py)
    - Clock: Fixed instant for refund calculations
    - Coordinator: Lifecycle coordinator wired to the fakes
"""

from decimal import Decimal

import pytest
from django.core.cache import cache

from subscriptions.roles import SubscriberRoleService
from subscriptions.services import (
    CancellationRefundCalculator,
    RefundPolicyResolver,
    SubscriptionLifecycleCoordinator,
)
from subscriptions.tests.factories import FIXED_NOW, RefundPolicyRecordFactory
from subscriptions.tests.fakes import (
    FakePolicyCatalog,
    FakeRoleDirectory,
    InMemorySubscriptionStore,
)
from wallets.services import WalletLedgerAdjuster
from wallets.tests.fakes import InMemoryWalletStore


@pytest.fixture(autouse=True)
def clear_cache():
    """Start every test with an empty cache so cached policy lists never leak."""
    cache.clear()
    yield
    cache.clear()


# ==========================================================================
# Fakes
# ==========================================================================


@pytest.fixture
def subscription_store():
    return InMemorySubscriptionStore()


@pytest.fixture
def policy_catalog():
    """Catalog holding one any-category policy for 30 day plans."""
    return FakePolicyCatalog([RefundPolicyRecordFactory(name="30 day plans")])


@pytest.fixture
def customer_wallets():
    """In-memory wallets; customer-1 starts with 1000 coins."""
    return InMemoryWalletStore({"customer-1": Decimal("1000.00")})


@pytest.fixture
def role_directory(monkeypatch):
    """Fake role directory installed behind the subscription_approved receiver."""
    directory = FakeRoleDirectory()
    monkeypatch.setattr(
        "subscriptions.signals.subscriber_roles", SubscriberRoleService(directory)
    )
    return directory


# ==========================================================================
# Clock
# ==========================================================================


@pytest.fixture
def fixed_now():
    return FIXED_NOW


# ==========================================================================
# Coordinator
# ==========================================================================


@pytest.fixture
def coordinator(subscription_store, policy_catalog, customer_wallets, role_directory):
    """Lifecycle coordinator over the in-memory fakes with a fixed clock."""
    return SubscriptionLifecycleCoordinator(
        store=subscription_store,
        calculator=CancellationRefundCalculator(RefundPolicyResolver(policy_catalog)),
        adjuster=WalletLedgerAdjuster(customer_wallets),
        clock=lambda: FIXED_NOW,
    )
