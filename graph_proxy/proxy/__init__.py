"""
Proxy Package
=============

This package implements the authenticated pass-through endpoint that
forwards client requests to Microsoft Graph.

Main Components:
----------------
- routes.py: FastAPI router with the /api/Proxy/{path} endpoint
- forwarder.py: URL construction, header selection and response relay
- upstream.py: httpx-based Graph client and UpstreamServiceError

Usage:
------
    from graph_proxy.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .forwarder import ForwardingHandler, RelayResponse
from .routes import proxy_router
from .upstream import GraphClient, UpstreamServiceError

__all__ = [
    "proxy_router",
    "ForwardingHandler",
    "RelayResponse",
    "GraphClient",
    "UpstreamServiceError",
]
