"""
Django app configuration for wallets.
"""

from django.apps import AppConfig


class WalletsConfig(AppConfig):
    """Configuration for the wallets application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "wallets"
    verbose_name = "Wallets"

    def ready(self):
        """
        Import signals when the app is ready.

        This connects the handler that provisions a wallet for every new user.
        """
        from wallets import signals  # noqa: F401
