"""
Django app configuration for subscriptions.
"""

from django.apps import AppConfig


class SubscriptionsConfig(AppConfig):
    """Configuration for the subscriptions application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "subscriptions"
    verbose_name = "Subscriptions"

    def ready(self):
        """
        Import signals when the app is ready.

        This connects the subscriber role and policy cache handlers.
        """
        from subscriptions import signals  # noqa: F401
