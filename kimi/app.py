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
FastAPI application factory.

Interactive docs are disabled: every path, /docs included, belongs to the
upstream API and is forwarded.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from loguru import logger

from kimi.config import APP_DESCRIPTION, APP_TITLE, APP_VERSION
from kimi.cors import install_cors
from kimi.http_client import UpstreamHttpClient
from kimi.routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared upstream client on startup, close it on shutdown."""
    if getattr(app.state, "upstream_client", None) is None:
        app.state.upstream_client = UpstreamHttpClient()
    logger.info("[App] Forwarding requests to {}", app.state.upstream_client.base_url)

    yield

    await app.state.upstream_client.close()
    app.state.upstream_client = None
    logger.info("[App] Upstream client closed")


def create_app(upstream_client: Optional[UpstreamHttpClient] = None) -> FastAPI:
    """
    Build the proxy application.

    Args:
        upstream_client: Pre-built upstream client (tests pass one backed by
            httpx.MockTransport); created in the lifespan when omitted

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=APP_TITLE,
        description=APP_DESCRIPTION,
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.upstream_client = upstream_client
    install_cors(app)
    app.include_router(router)
    return app
