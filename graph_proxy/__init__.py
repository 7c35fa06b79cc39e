"""
Graph Proxy
===========

Authenticated pass-through proxy from web clients to Microsoft Graph.

Packages:
    - auth:  Bearer extraction and on-behalf-of token acquisition
    - proxy: The /api/Proxy endpoint, forwarding handler and Graph client
"""

__version__ = "1.0.0"
