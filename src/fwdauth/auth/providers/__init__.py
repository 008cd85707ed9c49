"""Login provider implementations, keyed by provider name."""

from __future__ import annotations

from ..contracts import ConfigurationError
from .oidc import OIDCProvider, flatten_groups

PROVIDERS: dict[str, type[OIDCProvider]] = {
    OIDCProvider.provider_name: OIDCProvider,
}


def get_provider_class(name: str) -> type[OIDCProvider]:
    """Return the provider class registered under *name*."""
    try:
        return PROVIDERS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown provider {name!r}") from None


__all__ = [
    "OIDCProvider",
    "PROVIDERS",
    "flatten_groups",
    "get_provider_class",
]
