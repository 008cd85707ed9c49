"""Base Pydantic model for fwdauth.

All fwdauth models inherit from :class:`FwdAuthBaseModel` so that they share
one configuration:

- Strict field validation (no extra fields allowed)
- Immutable instances, safe to share between concurrent requests

Example:
    >>> from fwdauth.models import FwdAuthBaseModel
    >>>
    >>> class Endpoint(FwdAuthBaseModel):
    ...     url: str
    >>>
    >>> Endpoint(url="https://idp.example.com").model_dump()
    {'url': 'https://idp.example.com'}
"""

from pydantic import BaseModel, ConfigDict


class FwdAuthBaseModel(BaseModel):
    """Base model for all fwdauth Pydantic models.

    - extra="forbid": Rejects any fields not defined in the model
    - frozen=True: Makes instances immutable

    Models parsing third-party payloads (discovery documents, token
    responses, claim sets) override ``extra`` to ignore or keep unknown
    fields.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)
