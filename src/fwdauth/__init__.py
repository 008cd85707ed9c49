"""fwdauth - OpenID Connect login delegation for forward-auth gateways."""

__version__ = "0.1.0"
