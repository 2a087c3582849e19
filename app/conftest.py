"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Use fast password hasher for tests (PBKDF2 is too slow with 870K iterations)
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full cancellation / pause journeys on the ORM)
    - test_services.py, test_lifecycle.py, test_stores.py, etc. → integration
    - test_tier_selector.py, test_normalization.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    # Filename patterns for each category
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_services.py",
        "test_lifecycle.py",
        "test_stores.py",
        "test_catalog_cache.py",
        "test_roles.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_signals.py",
        "test_helpers.py",
        "test_exceptions.py",
        "test_normalization.py",
        "test_tier_selector.py",
        "test_policy_resolver.py",
        "test_refund_calculator.py",
        "test_paused_meals.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = os.path.basename(str(item.fspath))

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)
