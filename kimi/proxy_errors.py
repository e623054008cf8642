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
User-visible proxy errors.

Only two conditions ever reach the client as a proxy-generated error; every
other oddity in the payload is repaired on a best-effort basis.

Architecture:
- ProxyErrorKind: Enum of user-visible failure kinds
- ProxyErrorInfo: Status code and JSON body for one failure
- build_*_error(): Produce ProxyErrorInfo for each kind
- to_json_response(): Render ProxyErrorInfo as a FastAPI response

Example:
    >>> info = build_upstream_error(ConnectionRefusedError("Connection refused"))
    >>> info.status_code
    500
    >>> info.body
    {'error': 'Connection refused'}
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from fastapi.responses import JSONResponse


class ProxyErrorKind(Enum):
    """Kinds of failure surfaced to the caller."""

    # Inbound body is not valid JSON; the pipeline never runs
    MALFORMED_BODY = 400

    # Outbound request failed (DNS, TCP, TLS, connection reset); no retry
    UPSTREAM_CONNECTION = 500


@dataclass
class ProxyErrorInfo:
    """
    Structured information about a proxy-generated error.

    Attributes:
        kind: Failure kind
        status_code: HTTP status returned to the client
        body: JSON body returned to the client
    """

    kind: ProxyErrorKind
    status_code: int
    body: Dict[str, Any]


MALFORMED_BODY_MESSAGE: str = "Invalid request"


def build_malformed_body_error() -> ProxyErrorInfo:
    """Return the generic error for an unparseable request body."""
    return ProxyErrorInfo(
        kind=ProxyErrorKind.MALFORMED_BODY,
        status_code=ProxyErrorKind.MALFORMED_BODY.value,
        body={"error": MALFORMED_BODY_MESSAGE},
    )


def build_upstream_error(error: BaseException) -> ProxyErrorInfo:
    """
    Return the error for a failed upstream connection.

    httpx exceptions sometimes carry an empty message (e.g. bare timeouts),
    in which case the exception class name is reported instead.

    Args:
        error: Exception raised while contacting upstream

    Returns:
        ProxyErrorInfo carrying the underlying error message
    """
    message = str(error) or type(error).__name__
    return ProxyErrorInfo(
        kind=ProxyErrorKind.UPSTREAM_CONNECTION,
        status_code=ProxyErrorKind.UPSTREAM_CONNECTION.value,
        body={"error": message},
    )


def to_json_response(info: ProxyErrorInfo) -> JSONResponse:
    """Render error info as a JSON response."""
    return JSONResponse(content=info.body, status_code=info.status_code)
