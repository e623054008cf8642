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
Catch-all proxy route for Kimi Proxy.

Every method and path is handled the same way:
1. Buffer the whole request body and parse it as JSON.
2. Run the payload normalizer pipeline on it.
3. Forward it to the upstream host with the same method and path.
4. Stream the upstream response back unmodified.
"""

import json
import math
from typing import Any, AsyncIterator, List, Tuple

import httpx
from fastapi import APIRouter, Request, Response
from fastapi.responses import StreamingResponse
from loguru import logger

from kimi.middleware import run_payload_pipeline
from kimi.proxy_errors import (
    build_malformed_body_error,
    build_upstream_error,
    to_json_response,
)

router = APIRouter()

PROXY_METHODS: List[str] = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

# Connection-level headers; the ASGI server frames the relayed body itself
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "content-length",
    }
)


def _reject_constant(name: str) -> Any:
    """Reject NaN/Infinity, which are not valid JSON."""
    raise ValueError(f"Invalid JSON constant: {name}")


def _parse_finite_float(text: str) -> float:
    """Reject numbers that overflow to infinity (e.g. 1e400)."""
    value = float(text)
    if math.isinf(value):
        raise ValueError(f"Number out of range: {text}")
    return value


def parse_json_body(body: bytes) -> Any:
    """
    Parse a request body as strict JSON.

    Non-finite numbers are rejected, so the payload can always be
    serialized back as standard JSON.

    Args:
        body: Raw request body

    Returns:
        Parsed JSON value

    Raises:
        ValueError: If the body is not valid UTF-8 JSON
        RecursionError: If the body nests deeper than the parser allows
    """
    return json.loads(
        body,
        parse_constant=_reject_constant,
        parse_float=_parse_finite_float,
    )


def serialize_payload(payload: Any) -> bytes:
    """
    Serialize a payload as compact JSON.

    Non-ASCII text is escaped, which keeps lone surrogates (half of a
    split emoji) encodable.
    """
    return json.dumps(payload, separators=(",", ":")).encode("ascii")


def filter_response_headers(headers: httpx.Headers) -> List[Tuple[bytes, bytes]]:
    """
    Return upstream headers as raw pairs, without hop-by-hop headers.

    Raw pairs keep repeated headers (e.g. several set-cookie) intact.
    """
    return [
        (name, value)
        for name, value in headers.raw
        if name.decode("latin-1").lower() not in HOP_BY_HOP_HEADERS
    ]


def _request_path(request: Request) -> str:
    """Return the inbound path exactly as the client sent it."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        # Some servers leave the query string on raw_path
        return raw_path.split(b"?", 1)[0].decode("latin-1")
    return request.url.path


async def _stream_and_close(upstream: httpx.Response) -> AsyncIterator[bytes]:
    """Relay raw upstream body bytes, then release the connection."""
    try:
        if upstream.is_stream_consumed:
            # Body was already loaded into memory
            yield upstream.content
        else:
            async for chunk in upstream.aiter_raw():
                yield chunk
    finally:
        await upstream.aclose()


@router.api_route("/{full_path:path}", methods=PROXY_METHODS)
async def proxy_request(request: Request, full_path: str) -> Response:
    """
    Normalize and forward any request to the upstream API.

    Args:
        request: Inbound request
        full_path: Matched path (unused, the raw path is forwarded)

    Returns:
        Streaming relay of the upstream response, 400 for a malformed body,
        or 500 when upstream cannot be reached
    """
    body = await request.body()
    path = _request_path(request)
    content = body or None

    if body.strip():
        try:
            payload = parse_json_body(body)
        except (ValueError, RecursionError) as e:
            logger.warning("[Proxy] Malformed JSON body for {} {}: {}", request.method, path, e)
            return to_json_response(build_malformed_body_error())

        stats = run_payload_pipeline(payload)
        if stats.model_matched:
            content = serialize_payload(payload)

    upstream_client = request.app.state.upstream_client
    try:
        upstream = await upstream_client.open(
            request.method,
            path,
            request.url.query,
            request.headers.get("authorization"),
            content,
        )
    except httpx.RequestError as e:
        logger.error("[Proxy] Upstream request failed for {} {}: {!r}", request.method, path, e)
        return to_json_response(build_upstream_error(e))

    logger.info("[Proxy] {} {} -> {}", request.method, path, upstream.status_code)

    response = StreamingResponse(
        _stream_and_close(upstream),
        status_code=upstream.status_code,
    )
    response.raw_headers.extend(filter_response_headers(upstream.headers))
    return response
