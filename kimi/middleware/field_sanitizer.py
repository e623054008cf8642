# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Generic reasoning field sanitizer.

Some OpenAI-compatible clients include non-standard reasoning fields anywhere
in the payload: on messages, inside content blocks, inside tool call arguments.
Moonshot may *require* reasoning_content on assistant tool-call messages, so
reasoning_content is never deleted, only turned into a string.

Rules, applied to every object at any depth:
  - "reasoning" with a string value is removed
  - "reasoning_content" with a non-string value is replaced by its string form
"""

import json
from dataclasses import dataclass
from typing import Any

from kimi.middleware.tree import iter_json_objects


@dataclass
class SanitizerStats:
    """Mutation counters of one sanitizer run."""

    reasoning_fields_removed: int = 0
    reasoning_content_stringified: int = 0


def stringify_value(value: Any) -> str:
    """
    Convert any value to a string, preferring its JSON text.

    Never raises: values that cannot be JSON-encoded fall back to str().

    Args:
        value: Value to convert

    Returns:
        String form of the value
    """
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError):
        return str(value)


def sanitize_reasoning_fields(node: Any) -> SanitizerStats:
    """
    Walk the whole tree and clean reasoning fields in place.

    Primitives and unknown shapes are left alone, so this is safe to call on
    any parsed JSON value.

    Args:
        node: Parsed JSON value (usually the full request payload)

    Returns:
        SanitizerStats with mutation counters
    """
    stats = SanitizerStats()

    for obj in iter_json_objects(node):
        if "reasoning_content" in obj and not isinstance(obj["reasoning_content"], str):
            obj["reasoning_content"] = stringify_value(obj["reasoning_content"])
            stats.reasoning_content_stringified += 1

        if isinstance(obj.get("reasoning"), str):
            del obj["reasoning"]
            stats.reasoning_fields_removed += 1

    return stats
