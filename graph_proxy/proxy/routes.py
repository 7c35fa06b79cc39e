"""
Proxy Routes - Microsoft Graph Pass-Through
===========================================

This module exposes the pass-through endpoint that forwards authenticated
requests to Microsoft Graph.

Flow:
-----
1. Caller sends its Entra ID access token as a Bearer token
2. The token is exchanged on-behalf-of the user for a Graph token
3. The request is forwarded to the Graph root + captured path + query string
4. The Graph response is relayed back (status 200 on success, Graph's
   error status otherwise)

Endpoints:
----------
- GET|POST|PUT|PATCH|DELETE /api/Proxy/{path}
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..auth.bearer import get_user_assertion
from .forwarder import BODY_METHODS, SUPPORTED_METHODS, ForwardingHandler

logger = logging.getLogger(__name__)

proxy_router = APIRouter(prefix="/api/Proxy")


# ============================================================================
# Dependencies
# ============================================================================

def get_forwarding_handler(request: Request) -> ForwardingHandler:
    """
    Dependency to get the forwarding handler from app state.

    Raises:
        HTTPException: 503 if the application has not finished starting up
    """
    if not hasattr(request.app.state, "app_state"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Proxy not initialized"
        )

    handler = request.app.state.app_state.forwarding_handler
    if not handler:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Proxy not available"
        )

    return handler


def raw_path_suffix(request: Request, path: str) -> str:
    """
    Path after /api/Proxy/ exactly as the client sent it.

    The `{path:path}` parameter is percent-decoded, which would turn
    `%23`, `%2F` and `%3F` into URL delimiters upstream. The suffix is cut
    from the undecoded `raw_path` instead; `path` is used only when the
    server provides no raw path.
    """
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return path

    raw = raw_path.decode("latin-1").split("?", 1)[0]
    marker = f"{proxy_router.prefix}/"
    index = raw.find(marker)
    if index == -1:
        return path

    return raw[index + len(marker):]


# ============================================================================
# Proxy Endpoint
# ============================================================================

@proxy_router.api_route("/{path:path}", methods=list(SUPPORTED_METHODS))
async def proxy_graph(
    request: Request,
    path: str,
    user_assertion: str = Depends(get_user_assertion),
    handler: ForwardingHandler = Depends(get_forwarding_handler),
) -> Response:
    """
    Forward the request to Microsoft Graph and relay the response.

    Args:
        request: FastAPI request
        path: Everything after /api/Proxy/ (decoded; see raw_path_suffix)
        user_assertion: Caller's bearer token
        handler: Shared forwarding handler
    """
    query = request.url.query
    query_string = f"?{query}" if query else ""

    body = None
    if request.method in BODY_METHODS:
        body = await request.body() or None

    relay = await handler.forward(
        method=request.method,
        path_suffix=raw_path_suffix(request, path),
        query_string=query_string,
        body=body,
        content_type=request.headers.get("content-type"),
        headers=request.headers,
        user_assertion=user_assertion,
    )

    return relay.to_response()
