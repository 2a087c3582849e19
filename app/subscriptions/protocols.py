"""
Protocol definitions for the collaborators of the subscription core.

The lifecycle services depend on these interfaces, never on the ORM
directly. subscriptions.stores provides the Django implementations;
tests use in-memory fakes to inject failures.

Available Protocols:
    SubscriptionStore: Single-document reads and conditional writes
    PolicyCatalog: Active refund policies
    RoleDirectory: Subscriber role lookup and assignment

The wallet side of the saga is wallets.protocols.WalletStore.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from typing import Any

    from .types import RefundPolicyRecord


@runtime_checkable
class SubscriptionStore(Protocol):
    """
    Protocol for subscription document stores.

    Documents are plain mappings keyed by field name (JSON parts already
    decoded). No operation spans more than one document.
    """

    async def get_document(self, subscription_id: Any) -> Mapping[str, Any] | None:
        """
        Load one subscription document.

        Returns:
            The document including its "id" and "version", or None
        """
        ...

    async def update_document(
        self,
        subscription_id: Any,
        fields: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> None:
        """
        Write a partial update to one document and bump its version.

        Args:
            subscription_id: Document to update
            fields: Field values to write
            expected_version: When given, the write only happens if the
                stored version still equals it

        Raises:
            SubscriptionNotFoundError: If the document does not exist
            StaleRecordError: If expected_version no longer matches
            ExternalServiceError: If the store is unavailable
        """
        ...

    async def create_document(self, fields: Mapping[str, Any]) -> Any:
        """Insert a new document and return its id."""
        ...


@runtime_checkable
class PolicyCatalog(Protocol):
    """Protocol for refund policy catalogs."""

    async def list_active_refund_policies(self) -> Sequence[RefundPolicyRecord]:
        """
        Return every active policy with its tiers.

        Raises:
            ExternalServiceError: If the catalog is unavailable
        """
        ...


@runtime_checkable
class RoleDirectory(Protocol):
    """Protocol for user role lookup and assignment."""

    async def get_default_subscriber_role_id(self) -> Any | None:
        """Return the id of the role granted on approval, or None if unset."""
        ...

    async def user_has_role(self, user_id: Any, role_id: Any) -> bool:
        ...

    async def add_role_to_user(self, user_id: Any, role_id: Any) -> None:
        """
        Grant a role to a user.

        Raises:
            NotFoundError: If the user or role does not exist
        """
        ...
