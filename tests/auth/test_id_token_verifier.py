"""Tests for identity token verification."""

import time

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from fwdauth.auth.contracts import VerificationError
from fwdauth.auth.providers.verifier import IDTokenVerifier, supported_algorithms
from tests.auth.provider_adapter_testkit import (
    CLIENT_ID,
    ISSUER,
    FakeAsyncHttpClient,
    FakeResponse,
    SigningKey,
    id_token_claims,
    jwks_payload,
    patch_http_client,
)

CLIENT_PATH = "fwdauth.auth.providers.verifier.create_http_client"


def _verifier() -> IDTokenVerifier:
    return IDTokenVerifier(issuer=ISSUER, client_id=CLIENT_ID, jwks_uri=f"{ISSUER}/jwks")


def _serve_keys(monkeypatch: pytest.MonkeyPatch, *keys: SigningKey) -> FakeAsyncHttpClient:
    fake_client = FakeAsyncHttpClient(
        get_responses={"jwks": FakeResponse(200, jwks_payload(*keys))}
    )
    patch_http_client(monkeypatch, CLIENT_PATH, fake_client)
    return fake_client


@pytest.mark.asyncio
async def test_verify_returns_claims(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    _serve_keys(monkeypatch, signing_key)

    claims = await _verifier().verify(signing_key.sign(id_token_claims()))
    assert claims["email"] == "u@x.com"
    assert claims["aud"] == CLIENT_ID


@pytest.mark.asyncio
async def test_keys_are_cached_between_calls(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    fake_client = _serve_keys(monkeypatch, signing_key)
    verifier = _verifier()

    await verifier.verify(signing_key.sign(id_token_claims()))
    await verifier.verify(signing_key.sign(id_token_claims()))
    assert fake_client.get_calls == 1


@pytest.mark.asyncio
async def test_unknown_kid_refetches_keys(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    fake_client = _serve_keys(monkeypatch, signing_key)
    verifier = _verifier()
    await verifier.verify(signing_key.sign(id_token_claims()))

    stranger = SigningKey(kid="k2")
    with pytest.raises(VerificationError, match="No signing key"):
        await verifier.verify(stranger.sign(id_token_claims()))
    assert fake_client.get_calls == 2


@pytest.mark.asyncio
async def test_signature_from_foreign_key_rejected(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey, foreign_key: SigningKey
) -> None:
    fake_client = _serve_keys(monkeypatch, signing_key)
    verifier = _verifier()
    await verifier.verify(signing_key.sign(id_token_claims()))

    with pytest.raises(VerificationError, match="signature"):
        await verifier.verify(foreign_key.sign(id_token_claims()))
    # Cached keys failed, so the key set is fetched once more before rejecting.
    assert fake_client.get_calls == 2


@pytest.mark.asyncio
async def test_expired_token_rejected(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    _serve_keys(monkeypatch, signing_key)
    token = signing_key.sign(id_token_claims(exp=int(time.time()) - 60))

    with pytest.raises(VerificationError, match="expired"):
        await _verifier().verify(token)


@pytest.mark.asyncio
async def test_wrong_audience_rejected(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    _serve_keys(monkeypatch, signing_key)
    token = signing_key.sign(id_token_claims(aud="someone-else"))

    with pytest.raises(VerificationError, match="audience"):
        await _verifier().verify(token)


@pytest.mark.asyncio
async def test_wrong_issuer_rejected(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    _serve_keys(monkeypatch, signing_key)
    token = signing_key.sign(id_token_claims(iss="https://evil.example.com"))

    with pytest.raises(VerificationError, match="issuer"):
        await _verifier().verify(token)


@pytest.mark.asyncio
async def test_missing_exp_rejected(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    _serve_keys(monkeypatch, signing_key)
    claims = id_token_claims()
    del claims["exp"]

    with pytest.raises(VerificationError):
        await _verifier().verify(signing_key.sign(claims))


@pytest.mark.asyncio
async def test_unsupported_algorithm_rejected(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    _serve_keys(monkeypatch, signing_key)
    token = signing_key.sign(id_token_claims(), algorithm="RS512")

    with pytest.raises(VerificationError, match="unsupported algorithm"):
        await _verifier().verify(token)


@pytest.mark.asyncio
async def test_malformed_token_rejected() -> None:
    with pytest.raises(VerificationError, match="Malformed"):
        await _verifier().verify("not-a-jwt")


@pytest.mark.asyncio
async def test_jwks_fetch_failure_is_verification_error(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    fake_client = FakeAsyncHttpClient(get_exception=httpx.ConnectError("refused"))
    patch_http_client(monkeypatch, CLIENT_PATH, fake_client)

    with pytest.raises(VerificationError, match="signing keys"):
        await _verifier().verify(signing_key.sign(id_token_claims()))


@pytest.mark.asyncio
async def test_jwks_non_200_is_verification_error(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    fake_client = FakeAsyncHttpClient(default_get_response=FakeResponse(500, {}))
    patch_http_client(monkeypatch, CLIENT_PATH, fake_client)

    with pytest.raises(VerificationError, match="signing keys"):
        await _verifier().verify(signing_key.sign(id_token_claims()))


@pytest.mark.asyncio
async def test_encryption_keys_are_ignored(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    jwk = dict(signing_key.jwk, use="enc")
    fake_client = FakeAsyncHttpClient(default_get_response=FakeResponse(200, {"keys": [jwk]}))
    patch_http_client(monkeypatch, CLIENT_PATH, fake_client)

    with pytest.raises(VerificationError, match="No signing key"):
        await _verifier().verify(signing_key.sign(id_token_claims()))


# ── algorithm allow-list ───────────────────────────────────────────────


def test_symmetric_and_none_algorithms_are_dropped() -> None:
    assert supported_algorithms(["RS256", "HS256", "HS512", "none", "ES256"]) == (
        "RS256",
        "ES256",
    )
    assert supported_algorithms(["HS256", "none"]) == ("RS256",)
    assert supported_algorithms(None) == ("RS256",)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("algorithm", "key"),
    [("HS256", "s" * 64), ("HS512", "s" * 64), ("none", None)],
)
async def test_advertised_symmetric_or_none_token_rejected(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey, algorithm: str, key: str | None
) -> None:
    _serve_keys(monkeypatch, signing_key)
    verifier = IDTokenVerifier(
        issuer=ISSUER,
        client_id=CLIENT_ID,
        jwks_uri=f"{ISSUER}/jwks",
        algorithms=["RS256", "HS256", "HS512", "none"],
    )
    token = jwt.encode(id_token_claims(), key, algorithm=algorithm, headers={"kid": "k1"})

    with pytest.raises(VerificationError, match="unsupported algorithm"):
        await verifier.verify(token)


@pytest.mark.asyncio
async def test_token_algorithm_without_matching_key_type_rejected(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey
) -> None:
    _serve_keys(monkeypatch, signing_key)
    verifier = IDTokenVerifier(
        issuer=ISSUER,
        client_id=CLIENT_ID,
        jwks_uri=f"{ISSUER}/jwks",
        algorithms=["RS256", "ES256"],
    )
    ec_key = ec.generate_private_key(ec.SECP256R1())
    token = jwt.encode(id_token_claims(), ec_key, algorithm="ES256", headers={"kid": "k1"})

    with pytest.raises(VerificationError, match="No signing key"):
        await verifier.verify(token)


# ── key rotation ───────────────────────────────────────────────────────


@pytest.mark.asyncio
@pytest.mark.parametrize("include_kid", [False, True], ids=["no-kid", "same-kid"])
async def test_rotated_keys_are_refetched(
    monkeypatch: pytest.MonkeyPatch, signing_key: SigningKey, include_kid: bool
) -> None:
    fake_client = _serve_keys(monkeypatch, signing_key)
    verifier = _verifier()
    await verifier.verify(signing_key.sign(id_token_claims(), include_kid=include_kid))

    rotated = SigningKey(kid=signing_key.kid)
    fake_client.set_get_response("jwks", FakeResponse(200, jwks_payload(rotated)))

    claims = await verifier.verify(
        rotated.sign(id_token_claims(email="new@x.com"), include_kid=include_kid)
    )
    assert claims["email"] == "new@x.com"
    assert fake_client.get_calls == 2
