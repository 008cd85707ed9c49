"""Contracts and shared types for the fwdauth provider stack."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from fwdauth.models import FwdAuthBaseModel


class ProviderError(Exception):
    """Standardized provider error with HTTP-style status information."""

    def __init__(self, error: str, description: str | None = None, status_code: int = 400):
        super().__init__(description or error)
        self.error = error
        self.description = description
        self.status_code = status_code


class ConfigurationError(ProviderError):
    """Required provider settings are missing or the provider is not set up."""

    def __init__(self, description: str, missing: list[str] | None = None):
        super().__init__("configuration_error", description, status_code=500)
        self.missing = list(missing or [])


class DiscoveryError(ProviderError):
    """The issuer discovery document could not be fetched or was invalid."""

    def __init__(self, description: str, status_code: int = 503):
        super().__init__("discovery_error", description, status_code=status_code)


class ExchangeError(ProviderError):
    """The authorization code could not be exchanged at the token endpoint."""


class MissingIdentityTokenError(ProviderError):
    """The token endpoint answered without an ``id_token``."""

    def __init__(self, description: str = "Missing id_token"):
        super().__init__("missing_id_token", description, status_code=400)


class VerificationError(ProviderError):
    """The identity token failed signature, issuer, audience or expiry checks."""

    def __init__(self, description: str = "Identity token verification failed"):
        super().__init__("invalid_token", description, status_code=401)


class ClaimsError(ProviderError):
    """The identity token claims could not be decoded."""

    def __init__(self, description: str = "Identity token claims were invalid"):
        super().__init__("invalid_claims", description, status_code=401)


class User(FwdAuthBaseModel):
    """Normalized user returned by providers.

    ``user`` is the identifier the gateway authorizes against (the email for
    OIDC); ``groups`` is an unordered set of flat group names.
    """

    user: str
    groups: frozenset[str] = frozenset()


@runtime_checkable
class Provider(Protocol):
    """Interface every login provider embedded in the gateway implements."""

    provider_name: str

    def name(self) -> str:
        """Return the stable provider identifier used for dispatch."""

    async def setup(self) -> None:
        """Validate configuration and resolve provider metadata."""

    def get_login_url(self, redirect_uri: str, state: str) -> str:
        """Build the URL the browser is redirected to for login."""

    async def exchange_code(
        self, redirect_uri: str, code: str, *, timeout: float | None = None
    ) -> str:
        """Exchange an authorization code for the token passed to ``get_user``."""

    async def get_user(
        self, token: str, _: str | None = None, *, timeout: float | None = None
    ) -> User:
        """Resolve the user the token was issued for."""


__all__ = [
    "ClaimsError",
    "ConfigurationError",
    "DiscoveryError",
    "ExchangeError",
    "MissingIdentityTokenError",
    "Provider",
    "ProviderError",
    "User",
    "VerificationError",
]
