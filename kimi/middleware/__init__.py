# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Request payload normalizer for Kimi Proxy.

Rewrites parsed request bodies so Moonshot's stricter parameter and
message-shape rules are met without the client knowing about them.

Architecture:
    Each middleware module works in place on the parsed JSON tree and returns
    a small counters object. The pipeline orchestrator runs them in a
    deterministic order before the request is forwarded.

Middleware execution order:
    1. ParameterOverride - Pin temperature/top_p/n/penalties, drop "thinking"
    2. ReasoningContent - Guarantee reasoning_content on tool-call messages
    3. FieldSanitizer - Drop string "reasoning", stringify reasoning_content
    4. ToolIdNormalizer - Rewrite tool ids into [A-Za-z0-9_-]
"""

from kimi.middleware.pipeline import PipelineStats, run_payload_pipeline

__all__ = ["PipelineStats", "run_payload_pipeline"]
