# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
CORS handling for browser-based clients.

Every response, including errors, carries the same permissive CORS headers.
OPTIONS requests are answered locally with 200 and an empty body and never
reach the proxy route.
"""

from typing import Awaitable, Callable, Dict

from fastapi import FastAPI, Request, Response

from kimi.config import CORS_ALLOW_HEADERS, CORS_ALLOW_METHODS, CORS_ALLOW_ORIGIN

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": CORS_ALLOW_ORIGIN,
    "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
    "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
}


async def cors_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Short-circuit preflight requests and stamp CORS headers on every response."""
    if request.method == "OPTIONS":
        response = Response(status_code=200)
    else:
        response = await call_next(request)

    # Overrides any CORS headers relayed from upstream
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


def install_cors(app: FastAPI) -> None:
    """Register the CORS middleware on an application."""
    app.middleware("http")(cors_middleware)
