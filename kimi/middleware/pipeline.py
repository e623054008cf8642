# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Payload normalizer pipeline orchestrator.

Runs all payload transforms in the correct order.
This is the single entry point called by the proxy route.

Execution order matters:
  1. ParameterOverride    - Pin sampling parameters, drop "thinking"
  2. ReasoningContent     - Add reasoning_content where upstream requires it
  3. FieldSanitizer       - Drop string "reasoning", stringify reasoning_content
  4. ToolIdNormalizer     - Rewrite tool ids into [A-Za-z0-9_-]

Nothing runs unless the payload's model matches the configured pattern.
Transforms only return counters; all logging happens here.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Pattern

from loguru import logger

from kimi.config import (
    REASONING_CONTENT_INJECTION_ENABLED,
    REASONING_FIELD_SANITIZER_ENABLED,
    TOOL_ID_NORMALIZATION_ENABLED,
)
from kimi.middleware.field_sanitizer import SanitizerStats, sanitize_reasoning_fields
from kimi.middleware.parameter_override import apply_parameter_override, is_target_model
from kimi.middleware.reasoning_content import (
    ReasoningRepairStats,
    classify_message,
    ensure_reasoning_content,
    find_missing_reasoning_content,
)
from kimi.middleware.tool_id_normalizer import ToolIdGenerator, ToolIdStats, sanitize_tool_ids


@dataclass
class PipelineStats:
    """Outcome of one pipeline run."""

    model_matched: bool = False
    thinking_removed: bool = False
    reasoning: ReasoningRepairStats = field(default_factory=ReasoningRepairStats)
    sanitizer: SanitizerStats = field(default_factory=SanitizerStats)
    tool_ids: ToolIdStats = field(default_factory=ToolIdStats)


def _log_message_shapes(messages: Any) -> None:
    """Log per-message classification at DEBUG level."""
    if not isinstance(messages, list):
        return
    logger.debug("[Pipeline] Processing {} messages", len(messages))
    for idx, msg in enumerate(messages):
        shape = classify_message(msg)
        role = msg.get("role") if isinstance(msg, dict) else None
        has_reasoning = isinstance(msg, dict) and "reasoning_content" in msg
        logger.debug(
            "[Pipeline]   msg[{}] role={} shape={} has_reasoning_content={}",
            idx,
            role,
            shape.value,
            has_reasoning,
        )


def run_payload_pipeline(
    payload: Any,
    id_generator: Optional[ToolIdGenerator] = None,
    model_pattern: Optional[Pattern[str]] = None,
    enable_reasoning_injection: Optional[bool] = None,
    enable_field_sanitizer: Optional[bool] = None,
    enable_tool_id_normalization: Optional[bool] = None,
) -> PipelineStats:
    """
    Run the full payload normalization pipeline, in place.

    Never raises for well-formed JSON input: unexpected shapes degrade to
    no-ops on the affected sub-path.

    Args:
        payload: Parsed request body (modified in place)
        id_generator: Fallback tool id source (default: process-wide generator)
        model_pattern: Pattern that triggers the pipeline (default from config)
        enable_reasoning_injection: Toggle reasoning_content injection (default from config)
        enable_field_sanitizer: Toggle reasoning field sanitizer (default from config)
        enable_tool_id_normalization: Toggle tool id normalization (default from config)

    Returns:
        PipelineStats; model_matched is False when nothing was touched
    """
    stats = PipelineStats()

    if not isinstance(payload, dict) or not is_target_model(
        payload.get("model"), model_pattern
    ):
        return stats

    if enable_reasoning_injection is None:
        enable_reasoning_injection = REASONING_CONTENT_INJECTION_ENABLED
    if enable_field_sanitizer is None:
        enable_field_sanitizer = REASONING_FIELD_SANITIZER_ENABLED
    if enable_tool_id_normalization is None:
        enable_tool_id_normalization = TOOL_ID_NORMALIZATION_ENABLED

    stats.model_matched = True
    model = payload["model"]
    messages = payload.get("messages")

    # 1. Pin sampling parameters
    stats.thinking_removed = apply_parameter_override(payload)

    # 2. The model thinks unconditionally, so every assistant message needs the field
    if enable_reasoning_injection:
        _log_message_shapes(messages)
        stats.reasoning = ensure_reasoning_content(messages, apply_to_all_assistant=True)

    # 3. Clean non-standard reasoning fields anywhere in the payload
    if enable_field_sanitizer:
        stats.sanitizer = sanitize_reasoning_fields(payload)

    # 4. Normalize tool ids anywhere in the payload
    if enable_tool_id_normalization:
        stats.tool_ids = sanitize_tool_ids(payload, id_generator)

    missing = find_missing_reasoning_content(payload.get("messages"))
    if missing:
        logger.warning(
            "[Pipeline] Assistant tool-call messages still lack reasoning_content: {}",
            missing,
        )

    logger.info(
        "[Pipeline] Patched request for model {}: thinking_removed={}, "
        "reasoning_content(added={}, coerced={}, replaced={}), "
        "reasoning_removed={}, reasoning_content_stringified={}, "
        "tool_ids(rewritten={}, generated={})",
        model,
        stats.thinking_removed,
        stats.reasoning.added,
        stats.reasoning.coerced,
        stats.reasoning.replaced,
        stats.sanitizer.reasoning_fields_removed,
        stats.sanitizer.reasoning_content_stringified,
        stats.tool_ids.rewritten,
        stats.tool_ids.generated,
    )

    return stats
