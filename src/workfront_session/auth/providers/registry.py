"""Provider handler discovery and registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from workfront_session.auth.locators import Provider

if TYPE_CHECKING:
    from workfront_session.auth.providers.base import ProviderHandler
    from workfront_session.models import LoginSettings

logger = structlog.get_logger()

# Global registry: provider tag -> handler class
_registry: dict[Provider, type[ProviderHandler]] = {}


def register_provider(provider: Provider):
    """Decorator to register a handler class for a provider tag.

    Usage:
        @register_provider(Provider.BROKER)
        class OktaHandler(ProviderHandler):
            ...
    """

    def decorator(cls: type[ProviderHandler]) -> type[ProviderHandler]:
        cls.provider = provider
        _registry[provider] = cls
        logger.debug("provider_registered", provider=provider.value, cls=cls.__name__)
        return cls

    return decorator


def get_handler(provider: Provider, settings: LoginSettings) -> ProviderHandler:
    """Instantiate the handler registered for ``provider``.

    Raises:
        KeyError: If no handler is registered for that provider.
    """
    if provider not in _registry:
        available = ", ".join(sorted(p.value for p in _registry)) or "(none)"
        raise KeyError(f"No handler for provider '{provider.value}'. Available: {available}")

    return _registry[provider](settings)


def list_handlers() -> dict[Provider, type[ProviderHandler]]:
    """Return all registered handlers."""
    return dict(_registry)


def discover_providers() -> None:
    """Import the built-in handler modules to trigger registration."""
    import workfront_session.auth.providers.adobe  # noqa: F401
    import workfront_session.auth.providers.okta  # noqa: F401

    logger.debug("providers_discovered", names=sorted(p.value for p in list_handlers()))
