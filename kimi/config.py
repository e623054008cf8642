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
Kimi Proxy Configuration.

Centralized storage for all settings and constants.
Loads environment variables and provides typed access to them.
"""

import os
import re
import sys
from typing import Any, Dict, List, Optional, Pattern

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

_TRUE_VALUES = ("true", "1", "yes", "enabled", "on")


def _get_bool_env(var_name: str, default: str) -> bool:
    """Read a boolean flag from the environment."""
    return os.getenv(var_name, default).lower() in _TRUE_VALUES


# ==================================================================================================
# Server Settings
# ==================================================================================================

# Server host (default: 0.0.0.0 - listen on all interfaces)
# Use "127.0.0.1" to only allow local connections
DEFAULT_SERVER_HOST: str = "0.0.0.0"
SERVER_HOST: str = os.getenv("SERVER_HOST", DEFAULT_SERVER_HOST)

# Server port (default: 3001)
# Can be overridden by CLI: python main.py --port 9000
DEFAULT_SERVER_PORT: int = 3001
SERVER_PORT: int = int(os.getenv("SERVER_PORT", str(DEFAULT_SERVER_PORT)))

# ==================================================================================================
# Upstream Settings
# ==================================================================================================

# Host that every request is forwarded to, always over TLS.
DEFAULT_UPSTREAM_HOST: str = "api.moonshot.ai"
UPSTREAM_HOST: str = os.getenv("UPSTREAM_HOST", DEFAULT_UPSTREAM_HOST)

UPSTREAM_PORT: int = int(os.getenv("UPSTREAM_PORT", "443"))

# VPN/Proxy URL for reaching the upstream host through a proxy server.
# Leave empty to connect directly (default).
#
# Supports HTTP and SOCKS5 protocols.
#
# Examples:
#   VPN_PROXY_URL=http://127.0.0.1:7890
#   VPN_PROXY_URL=socks5://127.0.0.1:1080
#   VPN_PROXY_URL=192.168.1.100:8080  (defaults to http://)
VPN_PROXY_URL: str = os.getenv("VPN_PROXY_URL", "")

# TLS certificate verification for upstream HTTPS connections.
# Default is secure (verification enabled).
# Set to true only when your proxy performs TLS interception with untrusted certs.
ALLOW_UNTRUSTED_TLS: bool = _get_bool_env("ALLOW_UNTRUSTED_TLS", "false")

# Outbound Content-Type is forced regardless of what the client sent.
UPSTREAM_CONTENT_TYPE: str = "application/json"

# ==================================================================================================
# CORS Settings
# ==================================================================================================

CORS_ALLOW_ORIGIN: str = "*"
CORS_ALLOW_METHODS: str = "GET, POST, OPTIONS"
CORS_ALLOW_HEADERS: str = "Content-Type, Authorization"

# ==================================================================================================
# Model Matching
# ==================================================================================================

# Requests whose "model" matches this pattern (case-insensitive search) are patched.
# Some clients use model names that don't include "kimi" (e.g. "moonshot-v1-8k").
DEFAULT_MODEL_MATCH_PATTERN: str = "kimi|moonshot"
_MODEL_MATCH_PATTERN_RAW: str = os.getenv(
    "MODEL_MATCH_PATTERN", DEFAULT_MODEL_MATCH_PATTERN
)


def _compile_model_pattern(raw: str) -> Pattern[str]:
    """
    Compile the model match pattern, falling back to the default on error.

    Args:
        raw: Regular expression from the environment

    Returns:
        Compiled case-insensitive pattern
    """
    try:
        return re.compile(raw, re.IGNORECASE)
    except re.error as e:
        print(
            f"WARNING: invalid MODEL_MATCH_PATTERN {raw!r} ({e}), "
            f"using {DEFAULT_MODEL_MATCH_PATTERN!r}",
            file=sys.stderr,
        )
        return re.compile(DEFAULT_MODEL_MATCH_PATTERN, re.IGNORECASE)


MODEL_MATCH_PATTERN: Pattern[str] = _compile_model_pattern(_MODEL_MATCH_PATTERN_RAW)

# ==================================================================================================
# Fixed Sampling Parameters
# ==================================================================================================

# These are the ONLY values Kimi K2.5 accepts. Caller-supplied values are overwritten.
FIXED_SAMPLING_PARAMS: Dict[str, Any] = {
    "temperature": 1.0,
    "top_p": 0.95,
    "n": 1,
    "presence_penalty": 0.0,
    "frequency_penalty": 0.0,
}

# Parameters removed from matching requests (upstream rejects this shape).
REMOVED_PARAMS: List[str] = ["thinking"]

# ==================================================================================================
# Reasoning Content Settings
# ==================================================================================================

# Upstream has thinking enabled and rejects assistant tool-call messages
# without reasoning_content. An empty string is rejected too, hence a single space.
REASONING_CONTENT_PLACEHOLDER: str = " "

# Some clients serialize a missing value as this literal text.
REASONING_CONTENT_SENTINELS: List[str] = ["", "[undefined]"]

# Block types inside message content that carry a tool invocation.
TOOL_INVOCATION_BLOCK_TYPES: List[str] = ["tool_use", "tool_call", "function_call"]

# ==================================================================================================
# Tool ID Settings
# ==================================================================================================

# Upstream accepts tool ids made only of these characters.
TOOL_ID_INVALID_CHARS: Pattern[str] = re.compile(r"[^A-Za-z0-9_-]+")

# Prefix of generated ids for tool ids that clean down to nothing.
TOOL_ID_FALLBACK_PREFIX: str = "tooluse_"

# ==================================================================================================
# Normalizer Pipeline Settings
# ==================================================================================================

# Reasoning Content Injector: adds reasoning_content to assistant/tool-call messages.
# Default: true
REASONING_CONTENT_INJECTION_ENABLED: bool = _get_bool_env(
    "REASONING_CONTENT_INJECTION_ENABLED", "true"
)

# Generic Field Sanitizer: drops string "reasoning" fields, stringifies reasoning_content.
# Default: true
REASONING_FIELD_SANITIZER_ENABLED: bool = _get_bool_env(
    "REASONING_FIELD_SANITIZER_ENABLED", "true"
)

# Tool ID Normalizer: rewrites tool ids into [A-Za-z0-9_-].
# Default: true
TOOL_ID_NORMALIZATION_ENABLED: bool = _get_bool_env(
    "TOOL_ID_NORMALIZATION_ENABLED", "true"
)

# ==================================================================================================
# Logging Settings
# ==================================================================================================

# Log level for the application
# Available levels: TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL
# Default: INFO (recommended for production)
# Set to DEBUG to see per-message classification of every patched request
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# ==================================================================================================
# Application Version
# ==================================================================================================

APP_VERSION: str = "1.0"
APP_TITLE: str = "Kimi Proxy"
APP_DESCRIPTION: str = (
    "Compatibility proxy for the Moonshot AI (Kimi) chat API. "
    "Pins sampling parameters and repairs message shapes for OpenAI/Anthropic-style clients."
)


def get_upstream_base_url(host: Optional[str] = None, port: Optional[int] = None) -> str:
    """Return base URL of the upstream API (no trailing slash)."""
    host = host or UPSTREAM_HOST
    port = port or UPSTREAM_PORT
    if port == 443:
        return f"https://{host}"
    return f"https://{host}:{port}"
