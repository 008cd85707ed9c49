"""Identity token verification against an issuer's published JWKS."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx
import jwt
from jwt import PyJWK
from jwt.exceptions import (
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidKeyError,
    InvalidSignatureError,
    PyJWKError,
    PyJWTError,
)

from ..contracts import VerificationError
from ..http import create_http_client

DEFAULT_ALGORITHMS = ("RS256",)

# Asymmetric signing algorithm -> JWK key type able to verify it.
SUPPORTED_ALGORITHMS: dict[str, str] = {
    "RS256": "RSA",
    "RS384": "RSA",
    "RS512": "RSA",
    "PS256": "RSA",
    "PS384": "RSA",
    "PS512": "RSA",
    "ES256": "EC",
    "ES384": "EC",
    "ES512": "EC",
    "EdDSA": "OKP",
}


def supported_algorithms(advertised: Sequence[str] | None) -> tuple[str, ...]:
    """Keep the advertised algorithms that can be verified with a public key.

    Symmetric (``HS*``) and ``none`` entries are dropped; when nothing usable
    is left, ``DEFAULT_ALGORITHMS`` applies.
    """
    usable = tuple(alg for alg in advertised or () if alg in SUPPORTED_ALGORITHMS)
    return usable or DEFAULT_ALGORITHMS


class IDTokenVerifier:
    """Verifies identity tokens issued for one client by one issuer.

    Signing keys are fetched from ``jwks_uri`` on first use. They are fetched
    again when a token references a key id the cached set does not hold, or
    when no cached key verifies the signature (the issuer rotated its keys).
    """

    def __init__(
        self,
        *,
        issuer: str,
        client_id: str,
        jwks_uri: str,
        algorithms: Sequence[str] | None = None,
        provider_name: str = "oidc",
        logger: logging.Logger | None = None,
    ):
        self.issuer = issuer
        self.client_id = client_id
        self.jwks_uri = jwks_uri
        self.algorithms = supported_algorithms(algorithms)
        self.provider_name = provider_name
        self._logger = logger or logging.getLogger(__name__)
        self._keys: tuple[tuple[PyJWK, str], ...] = ()

    async def verify(self, raw_token: str, *, timeout: float | None = None) -> dict[str, Any]:
        """Verify *raw_token* and return its claim set.

        Raises ``VerificationError`` when the token is malformed, signed with
        an unknown key or unsupported algorithm, expired, or issued by another
        issuer or for another audience.
        """
        try:
            header = jwt.get_unverified_header(raw_token)
        except PyJWTError as exc:
            raise VerificationError("Malformed identity token") from exc

        algorithm = header.get("alg")
        if algorithm not in self.algorithms:
            raise VerificationError(f"Identity token signed with unsupported algorithm {algorithm!r}")

        kid = header.get("kid")
        refreshed = False
        candidates = self._match_keys(kid, algorithm)
        if not candidates:
            self._keys = await self._fetch_keys(timeout)
            refreshed = True
            candidates = self._match_keys(kid, algorithm)
        if not candidates:
            raise VerificationError("No signing key matches the identity token")

        claims = self._decode_with_any(raw_token, algorithm, candidates)
        if claims is None and not refreshed:
            self._keys = await self._fetch_keys(timeout)
            claims = self._decode_with_any(raw_token, algorithm, self._match_keys(kid, algorithm))
        if claims is None:
            raise VerificationError("Identity token signature did not match any signing key")
        return claims

    def _decode_with_any(
        self, raw_token: str, algorithm: str, candidates: Sequence[PyJWK]
    ) -> dict[str, Any] | None:
        for jwk in candidates:
            try:
                return self._decode(raw_token, algorithm, jwk)
            except InvalidSignatureError:
                continue
        return None

    def _decode(self, raw_token: str, algorithm: str, jwk: PyJWK) -> dict[str, Any]:
        try:
            return jwt.decode(
                raw_token,
                jwk.key,
                algorithms=[algorithm],
                audience=self.client_id,
                issuer=self.issuer,
                options={"require": ["exp", "iss", "aud"]},
            )
        except InvalidSignatureError:
            raise
        except ExpiredSignatureError as exc:
            raise VerificationError("Identity token has expired") from exc
        except InvalidAudienceError as exc:
            raise VerificationError("Identity token has an invalid audience") from exc
        except InvalidIssuerError as exc:
            raise VerificationError("Identity token has an invalid issuer") from exc
        except PyJWTError as exc:
            raise VerificationError("Invalid identity token") from exc

    def _match_keys(self, kid: Any, algorithm: str) -> list[PyJWK]:
        key_type = SUPPORTED_ALGORITHMS[algorithm]
        return [
            jwk
            for jwk, jwk_type in self._keys
            if jwk_type == key_type and (not kid or jwk.key_id == kid)
        ]

    async def _fetch_keys(self, timeout: float | None) -> tuple[tuple[PyJWK, str], ...]:
        async with create_http_client(timeout) as client:
            try:
                resp = await client.get(self.jwks_uri)
            except httpx.RequestError as exc:
                self._logger.warning(
                    "OIDC JWKS endpoint request failed",
                    extra={
                        "provider": self.provider_name,
                        "endpoint": "jwks",
                        "error_type": exc.__class__.__name__,
                    },
                )
                raise VerificationError("Unable to fetch identity token signing keys") from exc

        if resp.status_code != 200:
            self._logger.warning(
                "OIDC JWKS endpoint returned non-200",
                extra={
                    "provider": self.provider_name,
                    "endpoint": "jwks",
                    "status_code": resp.status_code,
                },
            )
            raise VerificationError("Unable to fetch identity token signing keys")

        try:
            data = resp.json()
        except ValueError as exc:
            raise VerificationError("Identity token signing keys were invalid") from exc

        entries = data.get("keys") if isinstance(data, Mapping) else None
        if not isinstance(entries, list):
            raise VerificationError("Identity token signing keys were invalid")
        return tuple(self._parse_keys(entries))

    def _parse_keys(self, entries: Sequence[Any]) -> list[tuple[PyJWK, str]]:
        keys: list[tuple[PyJWK, str]] = []
        for entry in entries:
            if not isinstance(entry, Mapping) or entry.get("use", "sig") != "sig":
                continue
            key_type = entry.get("kty")
            if key_type not in SUPPORTED_ALGORITHMS.values():
                continue
            try:
                keys.append((PyJWK.from_dict(dict(entry)), key_type))
            except (PyJWKError, InvalidKeyError):
                self._logger.debug("Skipping unusable JWKS entry", extra={"kid": entry.get("kid")})
        return keys
