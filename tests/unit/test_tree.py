# -*- coding: utf-8 -*-

"""Unit tests for the JSON tree walker."""

from kimi.middleware.tree import iter_json_objects


class TestIterJsonObjects:
    """Tests for iter_json_objects()."""

    def test_preorder_document_order(self):
        """
        What it does: Yields parents before children, left to right.
        Purpose: Transforms see nodes in a predictable order.
        """
        tree = {"n": 0, "a": {"n": 1, "b": {"n": 2}}, "c": [{"n": 3}, [{"n": 4}]], "d": {"n": 5}}

        order = [obj["n"] for obj in iter_json_objects(tree)]

        print(f"Visit order: {order}")
        assert order == [0, 1, 2, 3, 4, 5]

    def test_primitives_yield_nothing(self):
        """What it does: scalars are not visited."""
        for value in (None, 1, "x", True, 1.5):
            assert list(iter_json_objects(value)) == []

    def test_top_level_list(self):
        """What it does: dicts inside a top-level array are visited."""
        assert list(iter_json_objects([1, {"a": 1}, "x", {"b": 2}])) == [{"a": 1}, {"b": 2}]

    def test_deleting_keys_skips_their_subtree(self):
        """
        What it does: Deleting a key on a yielded dict prunes that branch.
        Purpose: Callers may mutate nodes while walking.
        """
        tree = {"drop": {"inner": {}}, "keep": {"inner": {}}}
        seen = []

        for obj in iter_json_objects(tree):
            seen.append(obj)
            obj.pop("drop", None)

        assert len(seen) == 3
        assert tree == {"keep": {"inner": {}}}

    def test_replaced_values_are_walked(self):
        """What it does: values rewritten by the caller are the ones visited."""
        tree = {"child": "placeholder"}
        visited = []

        for obj in iter_json_objects(tree):
            visited.append(obj)
            if obj is tree:
                obj["child"] = {"replaced": True}

        assert visited[-1] == {"replaced": True}

    def test_deep_nesting(self):
        """What it does: 10k levels of nesting do not recurse."""
        root = current = []
        for _ in range(10000):
            nxt = [{}]
            current.append(nxt)
            current = nxt

        assert sum(1 for _ in iter_json_objects(root)) == 10000
