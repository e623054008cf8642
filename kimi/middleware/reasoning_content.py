# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Reasoning content injector.

Kimi K2.5 has thinking enabled by default. The API then requires
reasoning_content on every assistant message that carries a tool call
(and, per the docs, on every assistant message). Clients that don't preserve
reasoning_content between turns get HTTP 400, so a placeholder is added.

A message carries a tool invocation in any of three styles:
  - OpenAI: non-empty "tool_calls" array
  - Legacy OpenAI: "function_call" object
  - Anthropic / block-style: "content" array with a tool_use, tool_call
    or function_call block
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List

from kimi.config import (
    REASONING_CONTENT_PLACEHOLDER,
    REASONING_CONTENT_SENTINELS,
    TOOL_INVOCATION_BLOCK_TYPES,
)
from kimi.middleware.field_sanitizer import stringify_value


class MessageShape(Enum):
    """Shape of a chat message as far as tool invocations are concerned."""

    NOT_A_MESSAGE = "not_a_message"
    PLAIN = "plain"
    TOOL_CALLS = "tool_calls"
    FUNCTION_CALL = "function_call"
    TOOL_BLOCKS = "tool_blocks"

    @property
    def carries_tool_invocation(self) -> bool:
        return self in (
            MessageShape.TOOL_CALLS,
            MessageShape.FUNCTION_CALL,
            MessageShape.TOOL_BLOCKS,
        )


@dataclass
class ReasoningRepairStats:
    """Mutation counters of one injector run."""

    added: int = 0
    coerced: int = 0
    replaced: int = 0

    @property
    def total(self) -> int:
        return self.added + self.coerced + self.replaced


def _has_tool_blocks(content: Any) -> bool:
    """Check if block-style content contains a tool invocation block."""
    if not isinstance(content, list):
        return False
    return any(
        isinstance(block, dict) and block.get("type") in TOOL_INVOCATION_BLOCK_TYPES
        for block in content
    )


def classify_message(message: Any) -> MessageShape:
    """
    Classify a message by the way it carries a tool invocation.

    When a message mixes styles, tool_calls wins over function_call,
    which wins over content blocks.

    Args:
        message: Any element of the "messages" array

    Returns:
        MessageShape of the message
    """
    if not isinstance(message, dict):
        return MessageShape.NOT_A_MESSAGE

    tool_calls = message.get("tool_calls")
    if isinstance(tool_calls, list) and tool_calls:
        return MessageShape.TOOL_CALLS

    if isinstance(message.get("function_call"), dict):
        return MessageShape.FUNCTION_CALL

    if _has_tool_blocks(message.get("content")):
        return MessageShape.TOOL_BLOCKS

    return MessageShape.PLAIN


def needs_reasoning_content(message: Any, apply_to_all_assistant: bool = False) -> bool:
    """
    Decide whether a message must carry reasoning_content.

    Args:
        message: Any element of the "messages" array
        apply_to_all_assistant: Require the field on every assistant message

    Returns:
        True for tool-invocation messages, and for assistant messages when
        apply_to_all_assistant is set
    """
    shape = classify_message(message)
    if shape is MessageShape.NOT_A_MESSAGE:
        return False
    if shape.carries_tool_invocation:
        return True
    return apply_to_all_assistant and message.get("role") == "assistant"


def ensure_reasoning_content(
    messages: Any,
    apply_to_all_assistant: bool = False,
) -> ReasoningRepairStats:
    """
    Make sure every message that needs reasoning_content has a usable one.

    Repair order for a message that needs the field:
      1. Missing or null -> placeholder
      2. Not a string -> its string form
      3. Empty or "[undefined]" -> placeholder
      4. Anything else is kept as is

    Idempotent: a second run finds only case 4.

    Args:
        messages: Value of the payload "messages" field (modified in place)
        apply_to_all_assistant: Require the field on every assistant message

    Returns:
        ReasoningRepairStats with mutation counters
    """
    stats = ReasoningRepairStats()
    if not isinstance(messages, list):
        return stats

    for msg in messages:
        if not needs_reasoning_content(msg, apply_to_all_assistant):
            continue

        value = msg.get("reasoning_content")
        if value is None:
            msg["reasoning_content"] = REASONING_CONTENT_PLACEHOLDER
            stats.added += 1
        elif not isinstance(value, str):
            msg["reasoning_content"] = stringify_value(value)
            stats.coerced += 1
        elif value in REASONING_CONTENT_SENTINELS:
            msg["reasoning_content"] = REASONING_CONTENT_PLACEHOLDER
            stats.replaced += 1

    return stats


def find_missing_reasoning_content(messages: Any) -> List[int]:
    """
    Return indexes of assistant tool-invocation messages without usable reasoning_content.

    Used for post-pipeline verification logging.
    """
    if not isinstance(messages, list):
        return []
    missing = []
    for idx, msg in enumerate(messages):
        if not classify_message(msg).carries_tool_invocation:
            continue
        if msg.get("role") != "assistant":
            continue
        value = msg.get("reasoning_content")
        if not isinstance(value, str) or value in REASONING_CONTENT_SENTINELS:
            missing.append(idx)
    return missing
