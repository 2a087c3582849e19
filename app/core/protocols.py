"""
Protocol definitions for generic infrastructure services.

This module defines Protocol classes that specify interfaces
for generic infrastructure concerns like caching.

Protocols define contracts that services must fulfill, enabling:
- Duck typing with static type checking
- Dependency inversion (depend on abstractions, not concretions)
- Easy mocking in tests

Available Protocols:
    CacheBackend: Async cache operations interface

Usage:
    from core.protocols import CacheBackend

    async def cached_operation(cache: CacheBackend, key: str):
        value = await cache.aget(key)
        if value is None:
            value = await expensive_computation()
            await cache.aset(key, value, timeout=3600)
        return value

    # django.core.cache.cache is a valid CacheBackend
    # even without explicit inheritance (duck typing)
    from django.core.cache import cache
    backend: CacheBackend = cache

Note:
    - Protocols are primarily for type checking
    - @runtime_checkable allows isinstance() checks
    - For domain store protocols see subscriptions.protocols
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any


@runtime_checkable
class CacheBackend(Protocol):
    """
    Protocol for async cache backends.

    Matches the async half of Django's cache interface, so any configured
    Django cache (local memory, Redis, database) satisfies it.
    """

    async def aget(self, key: str, default: Any = None) -> Any:
        """
        Get value from cache.

        Args:
            key: Cache key
            default: Value to return if key not found

        Returns:
            Cached value or default
        """
        ...

    async def aset(self, key: str, value: Any, timeout: int | None = None) -> None:
        """
        Set value in cache.

        Args:
            key: Cache key
            value: Value to cache
            timeout: Expiration time in seconds (None for no expiry)
        """
        ...

    async def adelete(self, key: str) -> bool:
        """
        Delete value from cache.

        Args:
            key: Cache key to delete

        Returns:
            True if key was deleted, False if it didn't exist
        """
        ...
