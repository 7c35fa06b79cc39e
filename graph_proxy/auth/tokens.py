"""
Token Acquisition
=================

Token provider interface used by the proxy, and the MSAL implementation
that exchanges the caller's token for a Microsoft Graph token using the
OAuth 2.0 on-behalf-of flow.

MSAL keeps acquired tokens in the application's in-memory token cache, so
repeated calls for the same user and scopes do not reach the identity
provider. Caching is entirely MSAL's concern; the proxy asks for a token on
every request.
"""

import asyncio
import logging
from typing import List, Optional, Protocol

import msal

from ..config import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class TokenAcquisitionError(Exception):
    """Raised when the identity provider does not return an access token."""

    def __init__(self, error: str, description: Optional[str] = None):
        self.error = error
        self.description = description
        super().__init__(f"{error}: {description}" if description else error)


# =============================================================================
# Interface
# =============================================================================

class TokenProvider(Protocol):
    """Anything that can produce a bearer token for the signed-in user."""

    async def get_access_token_for_user(
        self,
        scopes: List[str],
        user_assertion: str,
    ) -> str:
        ...


# =============================================================================
# MSAL Implementation
# =============================================================================

class MsalTokenProvider:
    """
    On-behalf-of token provider backed by a single MSAL confidential client.

    The client (and its token cache) lives for the lifetime of the
    application and is shared by all requests.
    """

    def __init__(self, client_app: msal.ConfidentialClientApplication):
        self._client_app = client_app

    @classmethod
    def from_settings(cls, settings: Settings) -> "MsalTokenProvider":
        client_app = msal.ConfidentialClientApplication(
            client_id=settings.AZURE_CLIENT_ID,
            client_credential=settings.AZURE_CLIENT_SECRET,
            authority=settings.azure_authority,
            token_cache=msal.TokenCache(),
        )
        return cls(client_app)

    async def get_access_token_for_user(
        self,
        scopes: List[str],
        user_assertion: str,
    ) -> str:
        """
        Exchange the user's token for an access token carrying `scopes`.

        MSAL is synchronous and may perform network I/O, so the call runs in
        a worker thread.

        Raises:
            TokenAcquisitionError: If MSAL returns an error result
        """
        result = await asyncio.to_thread(
            self._client_app.acquire_token_on_behalf_of,
            user_assertion=user_assertion,
            scopes=scopes,
        )

        if not result or "access_token" not in result:
            result = result or {}
            error = result.get("error", "unknown_error")
            description = result.get("error_description")
            logger.warning(
                f"On-behalf-of token acquisition failed: {error}",
                extra={"correlation_id": result.get("correlation_id")}
            )
            raise TokenAcquisitionError(error, description)

        logger.debug(
            "Acquired Graph token",
            extra={"token_source": result.get("token_source"), "scopes": " ".join(scopes)}
        )
        return result["access_token"]


__all__ = [
    "TokenAcquisitionError",
    "TokenProvider",
    "MsalTokenProvider",
]
