"""fwdauth authentication - login providers for the forward-auth gateway.

## Quick Example

```python
from fwdauth.auth import OIDCProvider, OIDCProviderConfigModel

provider = OIDCProvider(OIDCProviderConfigModel.from_env())
await provider.setup()

login_url = provider.get_login_url("https://app.example.com/_oauth", state)
# ... browser returns to the redirect URI with ?code=...
id_token = await provider.exchange_code("https://app.example.com/_oauth", code)
user = await provider.get_user(id_token)
print(user.user, sorted(user.groups))
```
"""

from .contracts import (
    ClaimsError,
    ConfigurationError,
    DiscoveryError,
    ExchangeError,
    MissingIdentityTokenError,
    Provider,
    ProviderError,
    User,
    VerificationError,
)
from .models import OIDCProviderConfigModel
from .providers import PROVIDERS, OIDCProvider, flatten_groups, get_provider_class

__all__ = [
    "ClaimsError",
    "ConfigurationError",
    "DiscoveryError",
    "ExchangeError",
    "MissingIdentityTokenError",
    "OIDCProvider",
    "OIDCProviderConfigModel",
    "PROVIDERS",
    "Provider",
    "ProviderError",
    "User",
    "VerificationError",
    "flatten_groups",
    "get_provider_class",
]
