"""
Bearer Token Extraction
=======================

Pulls the caller's bearer token out of the Authorization header. The token
is the user assertion handed to the token provider for the on-behalf-of
exchange; it is not verified here (Entra ID rejects invalid assertions
during the exchange).
"""

import logging
from typing import Any, Dict, Optional

import jwt
from jwt.exceptions import InvalidTokenError
from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


def extract_token_from_header(authorization: Optional[str]) -> str:
    """
    Extract Bearer token from Authorization header.

    Args:
        authorization: Authorization header value

    Returns:
        Extracted token string

    Raises:
        HTTPException: If header is missing or its format is invalid
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()

    if len(parts) != 2 or parts[0].lower() != 'bearer':
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return parts[1]


def peek_user_claims(token: str) -> Dict[str, Any]:
    """
    Read identity claims from a token without verifying it.

    Only used for log context. Opaque or malformed tokens yield an empty dict.
    """
    try:
        decoded = jwt.decode(token, options={"verify_signature": False})
    except InvalidTokenError:
        return {}

    return {
        "oid": decoded.get("oid"),
        "preferred_username": decoded.get("preferred_username"),
    }


async def get_user_assertion(request: Request) -> str:
    """
    FastAPI dependency returning the caller's bearer token.

    Raises:
        HTTPException: 401 if the Authorization header is missing or malformed
    """
    token = extract_token_from_header(request.headers.get("Authorization"))
    logger.debug("Extracted user assertion", extra=peek_user_claims(token))
    return token


__all__ = [
    "extract_token_from_header",
    "peek_user_claims",
    "get_user_assertion",
]
