"""Utility functions for testing B+-tree invariants."""

import logging
from bplus_index.bplus_tree_base import (
    BPlusTreeBase,
    Stats
)

TREE_FLAGS = (
    "keys_sorted",
    "is_search_tree",
    "occupancy_ok",
    "leaves_same_depth",
    "shape_consistent",
    "groups_non_empty",
    "parent_links_ok",
    "ids_unique",
    "linked_leaf_nodes",
    "leaf_keys_in_order",
)


def assert_tree_invariants_tc(tc, t: BPlusTreeBase, stats: Stats) -> None:
    """TestCase version: use inside unittest.TestCase methods."""
    for flag in TREE_FLAGS:
        tc.assertTrue(
            getattr(stats, flag),
            f"Invariant failed: {flag} is False\n{t.print_structure()}"
        )

    tc.assertIsNone(t.root.parent, "Root must not have a parent")

    if not t.is_empty():
        tc.assertGreater(
            stats.key_count, 0,
            f"Invariant failed: key_count={stats.key_count} ≤ 0 for non-empty tree"
        )
        tc.assertIsNotNone(
            stats.least_key,
            "Invariant failed: least_key is None for non-empty tree"
        )
        tc.assertIsNotNone(
            stats.greatest_key,
            "Invariant failed: greatest_key is None for non-empty tree"
        )
        tc.assertEqual(
            len(t), stats.key_count,
            f"Invariant failed: len()={len(t)} ≠ key_count={stats.key_count}"
        )


class InvariantError(Exception):
    """Raised when a B+-tree invariant is violated."""
    pass


def assert_tree_invariants_raise(t: BPlusTreeBase, stats: Stats) -> None:
    """Check all invariants, raising on the first failure."""
    for flag in TREE_FLAGS:
        if not getattr(stats, flag):
            logging.error(f"Invariant failed: {flag} is False")
            raise InvariantError(f"{flag} is False\n{t.print_structure()}")

    if t.root.parent is not None:
        raise InvariantError("root has a parent")
