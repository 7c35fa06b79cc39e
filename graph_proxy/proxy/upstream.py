"""
Upstream Client
===============

Thin wrapper around a long-lived httpx.AsyncClient that sends requests to
Microsoft Graph and turns non-success responses into UpstreamServiceError.
"""

import logging
from typing import Dict, Optional

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)


class UpstreamServiceError(Exception):
    """
    The upstream returned a non-success status.

    Attributes:
        status_code: Status reported by the upstream
        error_text: Upstream error payload, decoded as text
    """

    def __init__(self, status_code: int, error_text: str):
        self.status_code = status_code
        self.error_text = error_text
        super().__init__(error_text)

    def __str__(self) -> str:
        return self.error_text


class GraphClient:
    """
    Upstream HTTP client bound to a base URL.

    `base_url` keeps the API version segment (e.g. .../v1.0); callers that
    need a version-free root strip it themselves.
    """

    def __init__(self, base_url: str, http_client: httpx.AsyncClient):
        self.base_url = base_url
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> "GraphClient":
        if settings.UPSTREAM_TIMEOUT_SECONDS is not None:
            http_client = httpx.AsyncClient(
                timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
                follow_redirects=True,
            )
        else:
            http_client = httpx.AsyncClient(follow_redirects=True)
        return cls(settings.graph_base_url_str, http_client)

    async def send(
        self,
        url: str,
        method: str,
        content_type: Optional[str],
        headers: Dict[str, str],
        content: Optional[bytes] = None,
    ) -> httpx.Response:
        """
        Send one request and read the whole response body.

        Raises:
            UpstreamServiceError: If the upstream status is not 2xx
            httpx.TransportError: On connection-level failures
        """
        request_headers = dict(headers)
        if content_type:
            request_headers["Content-Type"] = content_type

        response = await self._http_client.request(
            method,
            url,
            headers=request_headers,
            content=content,
        )

        if not response.is_success:
            logger.info(
                f"Upstream returned {response.status_code}",
                extra={"method": method, "status_code": response.status_code}
            )
            raise UpstreamServiceError(response.status_code, response.text)

        return response

    async def aclose(self) -> None:
        await self._http_client.aclose()


__all__ = ["UpstreamServiceError", "GraphClient"]
