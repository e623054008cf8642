# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
HTTP client for the upstream Moonshot API.

One httpx.AsyncClient is shared by all requests for the application lifetime.
Responses are opened in streaming mode so the body can be relayed without
buffering. No timeouts and no retries are applied.
"""

from typing import Dict, Optional

import httpx
from loguru import logger

from kimi.config import (
    ALLOW_UNTRUSTED_TLS,
    UPSTREAM_CONTENT_TYPE,
    VPN_PROXY_URL,
    get_upstream_base_url,
)

# Headers httpx adds to every request by default. Removed from outbound
# requests: upstream gets framing headers, Content-Type and Authorization only.
CLIENT_DEFAULT_HEADERS = ("accept", "accept-encoding", "connection", "user-agent")


def normalize_proxy_url(proxy_url: str) -> Optional[str]:
    """
    Return a proxy URL with an explicit scheme, or None when unset.

    Bare "host:port" values default to http://.
    """
    proxy_url = (proxy_url or "").strip()
    if not proxy_url:
        return None
    if "://" not in proxy_url:
        return f"http://{proxy_url}"
    return proxy_url


def build_upstream_headers(authorization: Optional[str]) -> Dict[str, str]:
    """
    Build outbound request headers.

    Content-Type is always JSON regardless of what the client sent, and
    Authorization is passed through verbatim (empty when absent).

    Args:
        authorization: Inbound Authorization header value, if any

    Returns:
        Header dictionary for the upstream request
    """
    return {
        "Content-Type": UPSTREAM_CONTENT_TYPE,
        "Authorization": authorization or "",
    }


class UpstreamHttpClient:
    """
    Thin wrapper over httpx.AsyncClient bound to the upstream host.

    Attributes:
        base_url: Upstream origin, e.g. "https://api.moonshot.ai"

    Example:
        >>> client = UpstreamHttpClient()
        >>> response = await client.open("POST", "/v1/chat/completions", "", "Bearer sk-...", b"{}")
        >>> async for chunk in response.aiter_raw():
        ...     ...
        >>> await response.aclose()
        >>> await client.close()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        proxy_url: Optional[str] = None,
        verify_tls: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initializes the upstream client.

        Args:
            base_url: Upstream origin (default from config)
            proxy_url: Outbound proxy URL (default VPN_PROXY_URL)
            verify_tls: Verify upstream certificates (default: not ALLOW_UNTRUSTED_TLS)
            transport: Custom transport, e.g. httpx.MockTransport in tests
        """
        self.base_url = (base_url or get_upstream_base_url()).rstrip("/")

        if verify_tls is None:
            verify_tls = not ALLOW_UNTRUSTED_TLS
        proxy = normalize_proxy_url(VPN_PROXY_URL if proxy_url is None else proxy_url)

        client_kwargs = {
            "timeout": httpx.Timeout(None),
            "verify": verify_tls,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        elif proxy:
            client_kwargs["proxy"] = proxy
            logger.info("[HttpClient] Using outbound proxy: {}", proxy)

        if not verify_tls:
            logger.warning("[HttpClient] TLS verification toward upstream is DISABLED")

        self._client = httpx.AsyncClient(**client_kwargs)

    def build_url(self, path: str, query: str = "") -> str:
        """Join the upstream origin with an inbound path and raw query string."""
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"
        return url

    async def open(
        self,
        method: str,
        path: str,
        query: str,
        authorization: Optional[str],
        content: Optional[bytes],
    ) -> httpx.Response:
        """
        Send a request upstream and return the response with its body unread.

        The caller must close the returned response (aclose()).

        Args:
            method: HTTP method of the inbound request
            path: Inbound path, passed through unchanged
            query: Inbound raw query string
            authorization: Inbound Authorization header value
            content: Outbound body bytes, or None for no body

        Returns:
            Streaming httpx.Response

        Raises:
            httpx.RequestError: When the upstream cannot be reached
        """
        request = self._client.build_request(
            method,
            self.build_url(path, query),
            headers=build_upstream_headers(authorization),
            content=content,
        )
        for name in CLIENT_DEFAULT_HEADERS:
            request.headers.pop(name, None)
        return await self._client.send(request, stream=True)

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()
