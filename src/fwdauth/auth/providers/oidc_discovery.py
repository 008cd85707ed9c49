"""OpenID Connect discovery document fetching and parsing."""

from __future__ import annotations

import logging

import httpx
from pydantic import ConfigDict, ValidationError

from fwdauth.models import FwdAuthBaseModel

from ..contracts import DiscoveryError
from ..http import create_http_client

WELL_KNOWN_PATH = "/.well-known/openid-configuration"


class OIDCDiscoveryDocument(FwdAuthBaseModel):
    """Parsed OpenID Connect discovery document.

    Only the fields fwdauth needs are extracted; unknown fields are silently
    ignored (``extra="ignore"``).
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    userinfo_endpoint: str | None = None
    id_token_signing_alg_values_supported: list[str] | None = None


def discovery_url(issuer_url: str) -> str:
    """Return the discovery document URL for *issuer_url*."""
    return issuer_url.rstrip("/") + WELL_KNOWN_PATH


async def fetch_oidc_discovery(
    issuer_url: str, *, logger: logging.Logger | None = None
) -> OIDCDiscoveryDocument:
    """Fetch and parse the discovery document published by *issuer_url*.

    Warnings go to *logger* when given, otherwise to this module's logger.

    Raises ``DiscoveryError`` on network errors, non-200 responses, invalid
    payloads, or when the document names a different issuer.
    """
    log = logger or logging.getLogger(__name__)
    url = discovery_url(issuer_url)
    async with create_http_client() as client:
        try:
            resp = await client.get(url)
        except httpx.RequestError as exc:
            log.warning(
                "OIDC discovery endpoint request failed",
                extra={
                    "provider": "oidc",
                    "endpoint": "discovery",
                    "error_type": exc.__class__.__name__,
                },
            )
            raise DiscoveryError("OIDC discovery request failed") from exc

    if resp.status_code != 200:
        log.warning(
            "OIDC discovery endpoint returned non-200",
            extra={
                "provider": "oidc",
                "endpoint": "discovery",
                "status_code": resp.status_code,
            },
        )
        raise DiscoveryError("OIDC discovery request failed", status_code=resp.status_code)

    try:
        data = resp.json()
    except ValueError as exc:
        log.warning(
            "OIDC discovery endpoint returned invalid JSON",
            extra={
                "provider": "oidc",
                "endpoint": "discovery",
                "status_code": resp.status_code,
            },
        )
        raise DiscoveryError("OIDC discovery response was invalid") from exc

    if not isinstance(data, dict):
        raise DiscoveryError("OIDC discovery response was not a JSON object")

    try:
        document = OIDCDiscoveryDocument.model_validate(data)
    except ValidationError as exc:
        raise DiscoveryError("OIDC discovery response was missing required fields") from exc

    if document.issuer != issuer_url:
        log.warning(
            "OIDC discovery issuer mismatch",
            extra={
                "provider": "oidc",
                "endpoint": "discovery",
                "expected_issuer": issuer_url,
                "issuer": document.issuer,
            },
        )
        raise DiscoveryError(
            f"Issuer did not match the issuer returned by provider, "
            f"expected {issuer_url!r} got {document.issuer!r}"
        )

    return document
