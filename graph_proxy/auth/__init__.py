"""
Authentication Package

This package obtains the credentials the proxy attaches to upstream calls.

Modules:
- bearer: Extracts the caller's bearer token (the user assertion)
- tokens: Token provider interface and the MSAL on-behalf-of implementation

The token flow:
1. Client calls /api/Proxy/... with its own Entra ID access token
2. The proxy extracts that token from the Authorization header
3. MSAL exchanges it on-behalf-of the user for a Graph token
4. The Graph token is attached to the outbound request
"""

from .bearer import extract_token_from_header, get_user_assertion
from .tokens import MsalTokenProvider, TokenAcquisitionError, TokenProvider

__all__ = [
    "extract_token_from_header",
    "get_user_assertion",
    "MsalTokenProvider",
    "TokenAcquisitionError",
    "TokenProvider",
]
