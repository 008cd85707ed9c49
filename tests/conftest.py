"""
Global pytest configuration and fixtures.
"""

import pytest

from fwdauth.auth.models import OIDCProviderConfigModel
from tests.auth.provider_adapter_testkit import CLIENT_ID, ISSUER, SigningKey


@pytest.fixture(scope="session")
def signing_key() -> SigningKey:
    """RSA key published in the fake issuer's JWKS."""
    return SigningKey(kid="k1")


@pytest.fixture(scope="session")
def foreign_key() -> SigningKey:
    """RSA key the fake issuer does not publish."""
    return SigningKey(kid="k1")


@pytest.fixture
def oidc_config() -> OIDCProviderConfigModel:
    return OIDCProviderConfigModel(
        issuer_url=ISSUER,
        client_id=CLIENT_ID,
        client_secret="secret",
    )
