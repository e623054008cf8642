# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Sampling parameter override for Kimi/Moonshot models.

Kimi K2.5 accepts exactly one value for each sampling parameter and rejects
the Anthropic-style "thinking" parameter. Clients such as VS Code Copilot Chat
send their own values, so they are overwritten here.
"""

from typing import Any, Dict, Optional, Pattern

from kimi.config import FIXED_SAMPLING_PARAMS, MODEL_MATCH_PATTERN, REMOVED_PARAMS


def is_target_model(model: Any, pattern: Optional[Pattern[str]] = None) -> bool:
    """
    Check whether a request's model name should trigger normalization.

    Args:
        model: Value of the payload "model" field (any JSON value)
        pattern: Compiled pattern to search with (default from config)

    Returns:
        True only for string model names matching the pattern
    """
    if not isinstance(model, str):
        return False
    return (pattern or MODEL_MATCH_PATTERN).search(model) is not None


def apply_parameter_override(payload: Dict[str, Any]) -> bool:
    """
    Pin sampling parameters and drop unsupported ones, in place.

    Only the fixed parameters and the removed parameters are touched.

    Args:
        payload: Request payload (modified in place)

    Returns:
        True if any unsupported parameter was present and removed
    """
    removed = False
    for name in REMOVED_PARAMS:
        if name in payload:
            del payload[name]
            removed = True

    payload.update(FIXED_SAMPLING_PARAMS)
    return removed
