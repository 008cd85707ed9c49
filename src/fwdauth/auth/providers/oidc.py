"""OpenID Connect login provider for the forward-auth gateway.

Endpoints are resolved from the issuer's discovery document. Call
:meth:`OIDCProvider.setup` once at startup before using the provider; after
that every method may be awaited concurrently.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ConfigDict, ValidationError

from fwdauth.models import FwdAuthBaseModel

from ..contracts import (
    ClaimsError,
    ConfigurationError,
    MissingIdentityTokenError,
    Provider,
    User,
)
from ..models import OIDCProviderConfigModel
from .oauth import OAuth2Client
from .oidc_discovery import OIDCDiscoveryDocument, fetch_oidc_discovery
from .verifier import IDTokenVerifier

# "openid" is required for OpenID Connect flows.
SCOPES = ("openid", "profile", "email")


class _IdentityClaims(FwdAuthBaseModel):
    """Identity token claims used to build a User."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    email: str | None = None
    groups: list[str] | None = None


def flatten_groups(raw_groups: Iterable[str]) -> frozenset[str]:
    """Split group paths on ``/`` and union the non-empty segments.

    >>> sorted(flatten_groups(["/teamA/sub", "teamA"]))
    ['sub', 'teamA']
    """
    return frozenset(
        segment for raw in raw_groups for segment in raw.split("/") if segment
    )


class OIDCProvider(Provider):
    """Delegates login to an OpenID Connect issuer."""

    provider_name = "oidc"

    def __init__(self, config: OIDCProviderConfigModel, *, logger: logging.Logger | None = None):
        self.config = config
        self._logger = logger or logging.getLogger(__name__)

        # Populated by setup()
        self._discovery: OIDCDiscoveryDocument | None = None
        self._oauth: OAuth2Client | None = None
        self._verifier: IDTokenVerifier | None = None

    def name(self) -> str:
        return self.provider_name

    async def setup(self) -> None:
        """Validate configuration, run discovery and build the verifier.

        Raises ``ConfigurationError`` naming every missing setting, or
        ``DiscoveryError`` when the issuer metadata cannot be resolved. The
        provider is left untouched on failure.
        """
        missing = self.config.missing_settings()
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} must be set", missing=missing)

        discovery = await fetch_oidc_discovery(self.config.issuer_url, logger=self._logger)

        oauth = OAuth2Client(
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            authorization_endpoint=discovery.authorization_endpoint,
            token_endpoint=discovery.token_endpoint,
            scopes=SCOPES,
            provider_name=self.provider_name,
            logger=self._logger,
        )
        verifier = IDTokenVerifier(
            issuer=discovery.issuer,
            client_id=self.config.client_id,
            jwks_uri=discovery.jwks_uri,
            algorithms=discovery.id_token_signing_alg_values_supported,
            provider_name=self.provider_name,
            logger=self._logger,
        )

        self._discovery = discovery
        self._oauth = oauth
        self._verifier = verifier
        self._logger.info("OIDC discovery completed for issuer %s", discovery.issuer)

    def get_login_url(self, redirect_uri: str, state: str) -> str:
        return self._require_oauth().auth_code_url(redirect_uri=redirect_uri, state=state)

    async def exchange_code(
        self, redirect_uri: str, code: str, *, timeout: float | None = None
    ) -> str:
        token = await self._require_oauth().exchange(
            redirect_uri=redirect_uri, code=code, timeout=timeout
        )

        raw_id_token = token.extra("id_token")
        if not isinstance(raw_id_token, str):
            self._logger.warning(
                "OIDC token response did not include an id_token",
                extra={"provider": self.provider_name, "endpoint": "token"},
            )
            raise MissingIdentityTokenError()
        return raw_id_token

    async def get_user(
        self, token: str, _: str | None = None, *, timeout: float | None = None
    ) -> User:
        if self._verifier is None:
            raise ConfigurationError("setup() must be called before get_user()")

        claim_set = await self._verifier.verify(token, timeout=timeout)
        try:
            claims = _IdentityClaims.model_validate(claim_set)
        except ValidationError as exc:
            self._logger.warning(
                "OIDC identity token claims were invalid",
                extra={"provider": self.provider_name, "error_count": exc.error_count()},
            )
            raise ClaimsError() from exc

        groups = flatten_groups(claims.groups or [])
        self._logger.debug(
            "OIDC user resolved",
            extra={"provider": self.provider_name, "group_count": len(groups)},
        )
        return User(user=claims.email or "", groups=groups)

    def _require_oauth(self) -> OAuth2Client:
        if self._oauth is None:
            raise ConfigurationError("setup() must be called before using the OIDC provider")
        return self._oauth
