"""OAuth2 authorization-code client used by login providers."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import ConfigDict, ValidationError

from fwdauth.models import FwdAuthBaseModel

from ..contracts import ExchangeError
from ..http import create_http_client


class Token(FwdAuthBaseModel):
    """Successful token endpoint response.

    Fields beyond the standard OAuth2 ones (``id_token`` for OpenID Connect)
    are kept as extensions and read with :meth:`extra`.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    access_token: str
    token_type: str | None = None
    refresh_token: str | None = None
    expires_in: float | None = None

    def extra(self, key: str) -> Any:
        """Return the extension field *key*, or ``None`` when absent."""
        return (self.model_extra or {}).get(key)


class OAuth2Client:
    """Authorization-code grant client bound to one provider registration."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        authorization_endpoint: str,
        token_endpoint: str,
        scopes: Sequence[str],
        provider_name: str = "oauth",
        logger: logging.Logger | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.authorization_endpoint = authorization_endpoint
        self.token_endpoint = token_endpoint
        self.scopes = tuple(scopes)
        self.provider_name = provider_name
        self._logger = logger or logging.getLogger(__name__)

    def auth_code_url(self, *, redirect_uri: str, state: str) -> str:
        params: list[tuple[str, str]] = [
            ("client_id", self.client_id),
            ("redirect_uri", redirect_uri),
            ("response_type", "code"),
            ("scope", " ".join(self.scopes)),
            ("state", state),
        ]
        separator = "&" if "?" in self.authorization_endpoint else "?"
        return f"{self.authorization_endpoint}{separator}{urlencode(params)}"

    async def exchange(
        self, *, redirect_uri: str, code: str, timeout: float | None = None
    ) -> Token:
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }

        async with create_http_client(timeout) as client:
            try:
                resp = await client.post(
                    self.token_endpoint,
                    data=payload,
                    headers={
                        "Accept": "application/json",
                        "Content-Type": "application/x-www-form-urlencoded",
                    },
                )
            except httpx.RequestError as exc:
                self._logger.warning(
                    "OAuth token endpoint request failed",
                    extra={
                        "provider": self.provider_name,
                        "endpoint": "token",
                        "error_type": exc.__class__.__name__,
                    },
                )
                raise ExchangeError(
                    "temporarily_unavailable",
                    "OAuth token request failed",
                    status_code=503,
                ) from exc
        return self._parse_token_response(resp)

    def _parse_token_response(self, resp: Any) -> Token:
        if not 200 <= resp.status_code < 300:
            error_code = _try_extract_oauth_error_code(resp)
            self._logger.warning(
                "OAuth token endpoint returned non-2xx",
                extra={
                    "provider": self.provider_name,
                    "endpoint": "token",
                    "status_code": resp.status_code,
                    "provider_error": error_code,
                },
            )
            raise ExchangeError(
                error_code or "invalid_grant",
                "OAuth token request failed",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            self._logger.warning(
                "OAuth token endpoint returned invalid JSON",
                extra={
                    "provider": self.provider_name,
                    "endpoint": "token",
                    "status_code": resp.status_code,
                },
            )
            raise ExchangeError(
                "invalid_grant",
                "Invalid token response payload",
                status_code=resp.status_code,
            ) from exc

        if not isinstance(data, dict):
            raise ExchangeError(
                "invalid_grant",
                "Invalid token response payload",
                status_code=resp.status_code,
            )

        error = data.get("error")
        if error:
            self._logger.warning(
                "OAuth token endpoint returned OAuth error",
                extra={
                    "provider": self.provider_name,
                    "endpoint": "token",
                    "status_code": resp.status_code,
                    "provider_error": error,
                },
            )
            raise ExchangeError(
                error if isinstance(error, str) else "invalid_grant",
                "OAuth token request failed",
                status_code=resp.status_code,
            )

        if not data.get("access_token"):
            raise ExchangeError(
                "invalid_grant",
                "Server response missing access_token",
                status_code=resp.status_code,
            )

        try:
            return Token.model_validate(data)
        except ValidationError as exc:
            raise ExchangeError(
                "invalid_grant",
                "Invalid token response payload",
                status_code=resp.status_code,
            ) from exc


def _try_extract_oauth_error_code(resp: Any) -> str | None:
    try:
        payload = resp.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    return error if isinstance(error, str) and error else None
