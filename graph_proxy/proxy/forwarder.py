"""
Forwarding Handler
==================

Turns one inbound request into one authenticated upstream request and
builds the response relayed back to the caller.

Relay rules:
    - Success: status is always 200, whatever 2xx the upstream returned.
      Content-Type and body are passed through.
    - UpstreamServiceError: status is the upstream status, body is the
      error text.
    - Anything else (token failures, transport errors) propagates.
"""

import asyncio
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from fastapi import Response, status

from ..auth.tokens import TokenProvider
from .upstream import GraphClient, UpstreamServiceError

logger = logging.getLogger(__name__)


DEFAULT_CONTENT_TYPE = "application/json"

SUPPORTED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

# Methods whose inbound body is forwarded
BODY_METHODS = ("POST", "PUT", "PATCH")

# Lowercase names of inbound headers copied to the upstream request
FORWARDED_REQUEST_HEADERS = ("if-match",)

# Upstream response headers never copied to the relay (lowercase raw names)
EXCLUDED_RESPONSE_HEADERS = frozenset({
    b"connection",
    b"keep-alive",
    b"proxy-authenticate",
    b"proxy-authorization",
    b"te",
    b"trailer",
    b"trailers",
    b"transfer-encoding",
    b"upgrade",
    b"content-length",
    b"content-encoding",
    b"content-type",
})

_TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
_MEDIA_TYPE_PATTERN = re.compile(rf"^\s*{_TOKEN}/{_TOKEN}\s*(;.*)?$")

HeaderPairs = Union[Mapping, Iterable[Tuple[str, str]]]

RawHeaders = List[Tuple[bytes, bytes]]


class ContentTypeParseError(ValueError):
    """A Content-Type value is not a valid media type."""


# ============================================================================
# Relay Response
# ============================================================================

@dataclass
class RelayResponse:
    """Response relayed to the caller."""

    status_code: int
    content_type: str
    body: bytes
    headers: RawHeaders = field(default_factory=list)

    def to_response(self) -> Response:
        response = Response(
            content=self.body,
            status_code=self.status_code,
            headers={"content-type": self.content_type},
        )
        # Byte pairs appended untouched: repeats survive, values are never re-encoded
        for name, value in self.headers:
            response.raw_headers.append((name.lower(), value))
        return response


# ============================================================================
# Helpers
# ============================================================================

def strip_last_segment(base_url: str) -> str:
    """
    Remove the last `/` and everything after it.

    >>> strip_last_segment("https://graph.microsoft.com/v1.0")
    'https://graph.microsoft.com'
    """
    return base_url.rsplit("/", 1)[0]


def build_upstream_url(base_url: str, path_suffix: str, query_string: str) -> str:
    """Outbound URL; no escaping beyond what the inbound request carried."""
    return f"{strip_last_segment(base_url)}/{path_suffix}{query_string}"


def select_forwarded_headers(headers: HeaderPairs) -> Dict[str, str]:
    """
    Pick the inbound headers that travel upstream.

    Keys match case-insensitively; repeated values are joined with a comma
    into a single header.
    """
    items = headers.items() if isinstance(headers, Mapping) else headers

    collected: Dict[str, List[str]] = {}
    for name, value in items:
        key = name.lower()
        if key in FORWARDED_REQUEST_HEADERS:
            collected.setdefault(key, []).append(value)

    return {
        "-".join(part.capitalize() for part in key.split("-")): ",".join(values)
        for key, values in collected.items()
    }


def parse_content_type(value: Optional[str]) -> str:
    """
    Validate a Content-Type value.

    Raises:
        ContentTypeParseError: If the value is not `type/subtype[; params]`
    """
    if value is None or not _MEDIA_TYPE_PATTERN.match(value):
        raise ContentTypeParseError(f"Invalid content type: {value!r}")
    return value.strip()


def apply_content_type(value: Optional[str]) -> str:
    try:
        return parse_content_type(value)
    except ContentTypeParseError:
        return DEFAULT_CONTENT_TYPE


def relay_headers(upstream_headers: Iterable[Tuple[bytes, bytes]]) -> RawHeaders:
    """Raw upstream header pairs minus hop-by-hop and framing headers."""
    return [
        (name, value)
        for name, value in upstream_headers
        if name.lower() not in EXCLUDED_RESPONSE_HEADERS
    ]


def _log_detached_send_result(task: "asyncio.Future") -> None:
    """Report the outcome of an upstream send whose caller went away."""
    if task.cancelled():
        return

    exc = task.exception()
    if exc is not None:
        logger.warning(
            f"Upstream call failed after the caller disconnected: {exc}",
            extra={"exception_type": type(exc).__name__}
        )


# ============================================================================
# Handler
# ============================================================================

class ForwardingHandler:
    """
    Forwards requests to the upstream with a per-request bearer token.

    Holds no per-request state; one instance serves all requests.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        upstream: GraphClient,
        scopes: List[str],
    ):
        self._token_provider = token_provider
        self._upstream = upstream
        self._scopes = list(scopes)

    async def forward(
        self,
        method: str,
        path_suffix: str,
        query_string: str,
        body: Optional[bytes],
        content_type: Optional[str],
        headers: HeaderPairs,
        user_assertion: str,
    ) -> RelayResponse:
        """
        Forward one request upstream and build the relay response.

        Args:
            method: One of SUPPORTED_METHODS
            path_suffix: Path appended to the version-free base URL
            query_string: Raw query string including its leading '?', or ''
            body: Request body, or None
            content_type: Inbound declared Content-Type
            headers: Full inbound header set
            user_assertion: Caller's bearer token

        Raises:
            ValueError: If method is not supported
            TokenAcquisitionError: If no token could be acquired
        """
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported method: {method}")

        token = await self._token_provider.get_access_token_for_user(
            self._scopes, user_assertion
        )

        url = build_upstream_url(self._upstream.base_url, path_suffix, query_string)

        outbound_headers = select_forwarded_headers(headers)
        outbound_headers["Authorization"] = f"Bearer {token}"

        logger.info(
            f"Forwarding {method} request upstream",
            extra={"path_suffix": path_suffix, "has_body": body is not None}
        )

        content_type_out = DEFAULT_CONTENT_TYPE

        send_task = asyncio.ensure_future(
            self._upstream.send(
                url,
                method,
                content_type,
                outbound_headers,
                body,
            )
        )

        try:
            # Not cancelled when the inbound request goes away
            response = await asyncio.shield(send_task)

            upstream_types = response.headers.get_list("content-type")
            if upstream_types:
                content_type_out = upstream_types[0]

            return RelayResponse(
                status_code=status.HTTP_200_OK,
                content_type=apply_content_type(content_type_out),
                body=response.content,
                headers=relay_headers(response.headers.raw),
            )

        except asyncio.CancelledError:
            send_task.add_done_callback(_log_detached_send_result)
            raise

        except UpstreamServiceError as e:
            logger.warning(
                f"Relaying upstream error {e.status_code}",
                extra={"path_suffix": path_suffix, "status_code": e.status_code}
            )
            return RelayResponse(
                status_code=e.status_code,
                content_type=apply_content_type(content_type_out),
                body=str(e).encode("utf-8"),
            )


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "SUPPORTED_METHODS",
    "BODY_METHODS",
    "EXCLUDED_RESPONSE_HEADERS",
    "ContentTypeParseError",
    "RelayResponse",
    "ForwardingHandler",
    "strip_last_segment",
    "build_upstream_url",
    "select_forwarded_headers",
    "parse_content_type",
    "apply_content_type",
    "relay_headers",
]
