"""Provider configuration models."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import Field

from fwdauth.models import FwdAuthBaseModel

# Configuration key -> environment variable, for each required OIDC setting.
OIDC_SETTINGS: dict[str, str] = {
    "providers.oidc.issuer-url": "PROVIDERS_OIDC_ISSUER_URL",
    "providers.oidc.client-id": "PROVIDERS_OIDC_CLIENT_ID",
    "providers.oidc.client-secret": "PROVIDERS_OIDC_CLIENT_SECRET",
}


class OIDCProviderConfigModel(FwdAuthBaseModel):
    """OpenID Connect provider configuration.

    Fields default to empty strings so that an incomplete configuration can
    still be constructed; ``OIDCProvider.setup()`` reports every missing
    setting at once.
    """

    issuer_url: str = ""
    client_id: str = ""
    # Never rendered in repr() or model_dump() output.
    client_secret: str = Field(default="", repr=False, exclude=True)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> OIDCProviderConfigModel:
        """Load the configuration from environment variables.

        Reads:
            - PROVIDERS_OIDC_ISSUER_URL
            - PROVIDERS_OIDC_CLIENT_ID
            - PROVIDERS_OIDC_CLIENT_SECRET
        """
        env = os.environ if environ is None else environ
        return cls(
            issuer_url=env.get("PROVIDERS_OIDC_ISSUER_URL", ""),
            client_id=env.get("PROVIDERS_OIDC_CLIENT_ID", ""),
            client_secret=env.get("PROVIDERS_OIDC_CLIENT_SECRET", ""),
        )

    def missing_settings(self) -> list[str]:
        """Return the configuration keys of required settings that are empty."""
        values = (self.issuer_url, self.client_id, self.client_secret)
        return [key for key, value in zip(OIDC_SETTINGS, values) if not value]
