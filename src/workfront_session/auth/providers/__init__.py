"""Sign-in handlers for the identity providers in front of Workfront."""

from workfront_session.auth.providers.registry import (
    discover_providers,
    get_handler,
    list_handlers,
    register_provider,
)

__all__ = ["discover_providers", "get_handler", "list_handlers", "register_provider"]
