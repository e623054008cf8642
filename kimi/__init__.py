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
Kimi Proxy - compatibility proxy for the Moonshot AI chat API.

This package rewrites OpenAI/Anthropic-style chat requests so that
Moonshot's (Kimi K2.5) stricter requirements are met, then forwards them.

Modules:
    - config: Configuration and constants
    - app: FastAPI application factory
    - routes: Catch-all proxy route
    - cors: CORS headers and OPTIONS handling
    - http_client: Upstream HTTP client
    - proxy_errors: User-visible error responses
    - middleware: Request payload normalizer pipeline
"""

# Version is imported from config.py - the single source of truth
from kimi.config import APP_VERSION as __version__

# Main components for convenient import
from kimi.app import create_app
from kimi.http_client import UpstreamHttpClient
from kimi.routes import router

# Normalizer
from kimi.middleware import PipelineStats, run_payload_pipeline
from kimi.middleware.parameter_override import apply_parameter_override, is_target_model
from kimi.middleware.reasoning_content import (
    MessageShape,
    classify_message,
    ensure_reasoning_content,
)
from kimi.middleware.field_sanitizer import sanitize_reasoning_fields, stringify_value
from kimi.middleware.tool_id_normalizer import (
    DEFAULT_TOOL_ID_GENERATOR,
    ToolIdGenerator,
    normalize_tool_id,
    sanitize_tool_ids,
)

__all__ = [
    # Version
    "__version__",

    # Main components
    "create_app",
    "UpstreamHttpClient",
    "router",

    # Normalizer
    "PipelineStats",
    "run_payload_pipeline",
    "apply_parameter_override",
    "is_target_model",
    "MessageShape",
    "classify_message",
    "ensure_reasoning_content",
    "sanitize_reasoning_fields",
    "stringify_value",
    "DEFAULT_TOOL_ID_GENERATOR",
    "ToolIdGenerator",
    "normalize_tool_id",
    "sanitize_tool_ids",
]
