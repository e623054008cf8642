# -*- coding: utf-8 -*-

# Kimi Proxy
# Copyright (C) 2025
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Depth-first traversal over parsed JSON trees.

Parsed JSON is acyclic, so no cycle detection is done. The walk uses an
explicit stack, so deeply nested payloads cannot hit the recursion limit.
"""

from typing import Any, Dict, Iterator


def iter_json_objects(node: Any) -> Iterator[Dict[str, Any]]:
    """
    Yield every JSON object (dict) in the tree, parents before children.

    Children of an object are read only after the caller resumes the
    iterator, so the caller may rewrite or delete keys of the yielded object
    and the walk continues over what is left.

    Args:
        node: Any parsed JSON value

    Yields:
        Each dict in pre-order, in document order
    """
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            yield current
            children = list(current.values())
        elif isinstance(current, list):
            children = current
        else:
            continue
        # Reversed so the leftmost child is visited first
        stack.extend(
            child for child in reversed(children) if isinstance(child, (dict, list))
        )
