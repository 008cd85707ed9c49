"""Shared HTTP client factory for provider network calls."""

from __future__ import annotations

import httpx

DEFAULT_TIMEOUT = 30.0


def create_http_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` for one provider request.

    Redirects are followed. ``timeout`` is the per-call deadline in seconds;
    when omitted, ``DEFAULT_TIMEOUT`` applies.
    """
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(DEFAULT_TIMEOUT if timeout is None else timeout),
    )
