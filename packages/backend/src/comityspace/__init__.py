"""ComitySpace — multi-tenant volunteer management backend.

Organizations manage volunteers behind a shared-password login.
This package holds the authentication core: credential resolution,
token issuance, and the request gate that scopes every call to an
organization.
"""

__version__ = "0.1.0"
