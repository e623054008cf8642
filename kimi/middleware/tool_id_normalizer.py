# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Tool ID normalizer middleware.

Moonshot only accepts tool ids made of [A-Za-z0-9_-]. Clients generate ids
freely (e.g. "call!!1", "toolu_01:abc", "functions.read_file:0"), so every id
is rewritten wherever it appears:

  - node.tool_use.id
  - node.id            when node.type == "tool_use"
  - node.tool_use_id   when node.type == "tool_result"
  - node.tool_call_id  on any node
  - node.tool_use_id   on any node
  - id of every element of a "tool_calls" array

Cleaning is a pure function of the original string, so a tool call and the
result that references it stay linked. Strings that clean down to nothing get
a generated "tooluse_<N>" id from a process-wide counter.

Within one payload the same degenerate string always maps to the same
fallback, so a call and its result keep matching. The trade-off: two
parallel tool calls sharing one degenerate id (e.g. both "") also share
the fallback. Such ids were already ambiguous for their results, so no
link is lost, but the duplicate is not split apart either.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from kimi.config import TOOL_ID_FALLBACK_PREFIX, TOOL_ID_INVALID_CHARS
from kimi.middleware.tree import iter_json_objects


class ToolIdGenerator:
    """
    Thread-safe generator of fallback tool ids.

    The counter starts at 0 and is incremented before use, so the first id
    is "tooluse_1". Ids are never reused until reset() is called.

    Example:
        >>> gen = ToolIdGenerator()
        >>> gen.next_id()
        'tooluse_1'
        >>> gen.next_id()
        'tooluse_2'
    """

    def __init__(self, prefix: str = TOOL_ID_FALLBACK_PREFIX):
        self._prefix = prefix
        self._counter = 0
        self._lock = threading.Lock()

    @property
    def counter(self) -> int:
        """Last number handed out (0 if none yet)."""
        return self._counter

    def next_id(self) -> str:
        """Return a new, never-before-issued fallback id."""
        with self._lock:
            self._counter += 1
            value = self._counter
        return f"{self._prefix}{value}"

    def reset(self) -> None:
        """Restart numbering from zero. Intended for tests."""
        with self._lock:
            self._counter = 0


# Shared by every request for the lifetime of the process
DEFAULT_TOOL_ID_GENERATOR = ToolIdGenerator()


@dataclass
class ToolIdStats:
    """Mutation counters of one normalizer run."""

    rewritten: int = 0
    generated: int = 0


def clean_tool_id(value: str) -> str:
    """
    Replace disallowed characters and trim the underscores that leaves at the ends.

    Each run of disallowed characters becomes a single "_". An id that is
    already valid is returned unchanged.

    Args:
        value: Original tool id

    Returns:
        Cleaned id, possibly empty
    """
    if not TOOL_ID_INVALID_CHARS.search(value):
        return value
    return TOOL_ID_INVALID_CHARS.sub("_", value).strip("_")


def normalize_tool_id(
    value: Any,
    generator: Optional[ToolIdGenerator] = None,
    fallbacks: Optional[Dict[str, str]] = None,
) -> Optional[str]:
    """
    Normalize a tool id into the upstream character set.

    Args:
        value: Candidate id (any JSON value)
        generator: Fallback id source (default: process-wide generator)
        fallbacks: Optional memo of original string -> generated id, so the
            same degenerate id maps to the same fallback within one payload

    Returns:
        Normalized id, or None if value is not a string
    """
    if not isinstance(value, str):
        return None

    cleaned = clean_tool_id(value)
    if cleaned:
        return cleaned

    if fallbacks is not None and value in fallbacks:
        return fallbacks[value]

    generated = (generator or DEFAULT_TOOL_ID_GENERATOR).next_id()
    if fallbacks is not None:
        fallbacks[value] = generated
    return generated


def sanitize_tool_ids(
    node: Any,
    generator: Optional[ToolIdGenerator] = None,
) -> ToolIdStats:
    """
    Walk the whole tree and normalize every tool id in place.

    Non-string ids are left untouched. Fields are never deleted.

    Args:
        node: Parsed JSON value (usually the full request payload)
        generator: Fallback id source (default: process-wide generator)

    Returns:
        ToolIdStats with mutation counters
    """
    stats = ToolIdStats()
    fallbacks: Dict[str, str] = {}

    def _rewrite(obj: Dict[str, Any], key: str) -> None:
        if key not in obj:
            return
        normalized = normalize_tool_id(obj[key], generator, fallbacks)
        if normalized is not None and normalized != obj[key]:
            obj[key] = normalized
            stats.rewritten += 1

    for obj in iter_json_objects(node):
        tool_use = obj.get("tool_use")
        if isinstance(tool_use, dict):
            _rewrite(tool_use, "id")

        node_type = obj.get("type")
        if node_type == "tool_use":
            _rewrite(obj, "id")
        elif node_type == "tool_result":
            _rewrite(obj, "tool_use_id")

        _rewrite(obj, "tool_call_id")
        _rewrite(obj, "tool_use_id")

        tool_calls = obj.get("tool_calls")
        if isinstance(tool_calls, list):
            for call in tool_calls:
                if isinstance(call, dict):
                    _rewrite(call, "id")

    stats.generated = len(fallbacks)
    return stats
