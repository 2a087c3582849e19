"""
Django signals for wallets.

Every user gets an empty wallet as soon as the account is created, so
refunds and pause credits never hit a missing wallet for real customers.

Related files:
    - apps.py: Signal import in ready()
    - services.py: WalletService.ensure_wallet
"""

import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL)
def create_user_wallet(sender, instance, created, raw=False, **kwargs):
    """
    Create a Wallet for newly created users.

    Skipped for fixture loading (raw=True).
    """
    if created and not raw:
        from wallets.services import WalletService

        WalletService.ensure_wallet(instance)
        logger.debug(f"Wallet created for user: {instance.pk}")
