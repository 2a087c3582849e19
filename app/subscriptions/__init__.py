"""
Subscriptions app - meal plan lifecycle, cancellation refunds and paused meals.

Public API (import from the submodules):
    Services:
        subscriptions.services.build_default_coordinator
        subscriptions.services.SubscriptionLifecycleCoordinator

    Records:
        subscriptions.types - SubscriptionRecord, RefundInfo, PausedMeal, ...

    Stores:
        subscriptions.stores - Django ORM implementations of the
            protocols in subscriptions.protocols

    Signals:
        subscriptions.signals.subscription_approved

Note:
    Models are not imported here to avoid AppRegistryNotReady errors.
"""
