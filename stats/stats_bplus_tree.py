"""Statistics helpers and random workloads for B+-trees."""
# pylint: skip-file

import logging
import time
from statistics import mean
from typing import List, Optional, Tuple
import numpy as np

from bplus_index.base import Row, by_age, by_id
from bplus_index.factory import make_bplustree_classes
from bplus_index.bplus_tree_base import (
    BPlusTreeBase,
    Stats,
    bptree_stats_,
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


def assert_invariants(t: BPlusTreeBase, stats: Stats) -> None:
    """Check all invariants, but only log ERROR messages on failures."""
    for flag in TREE_FLAGS:
        if not getattr(stats, flag):
            logging.error("Invariant failed: %s is False", flag)

    if not t.is_empty():
        if stats.key_count <= 0:
            logging.error(
                "Invariant failed: key_count=%d ≤ 0 for non-empty tree",
                stats.key_count
            )
        if stats.least_key is None or stats.greatest_key is None:
            logging.error(
                "Invariant failed: missing least/greatest key for non-empty tree"
            )


def random_rows(
    n: int,
    key_space: int = 1 << 20,
    age_space: int = 100,
    seed: Optional[int] = None,
) -> List[Row]:
    """
    `n` rows with distinct random ids drawn from ``range(key_space)`` and ages
    drawn uniformly from ``range(age_space)``, in random order.
    """
    if key_space < n:
        raise ValueError(f"Key-space too small! Required: {n}, Available: {key_space}")
    rng = np.random.default_rng(seed)
    ids = rng.choice(key_space, size=n, replace=False)
    ages = rng.integers(0, age_space, size=n)
    return [Row(int(i), f"user_{int(i)}", int(a)) for i, a in zip(ids, ages)]


def shuffled(rows: List[Row], seed: Optional[int] = None) -> List[Row]:
    rng = np.random.default_rng(seed)
    return [rows[i] for i in rng.permutation(len(rows))]


def random_tree_of_size(
    n: int,
    order: int = 4,
    unique_keys: bool = True,
    seed: Optional[int] = None,
) -> Tuple[BPlusTreeBase, List[Row]]:
    """Build a tree of `n` random rows; keyed by id if unique, else by age."""
    TreeClass, _ = make_bplustree_classes(order)
    rows = random_rows(n, seed=seed)
    selector = by_id if unique_keys else by_age
    tree = TreeClass.from_rows(rows, selector, unique_keys=unique_keys)
    return tree, rows


def check_leaf_keys_and_groups(
    tree: BPlusTreeBase,
    expected_keys: Optional[List[int]] = None
) -> Tuple[List[int], bool, bool, bool]:
    """
    Traverse the leaf chain once and compute three invariants:
      1. presence_ok: if `expected_keys` is given, the chain holds exactly
                      those keys; otherwise always True.
      2. groups_ok: every key has a non-empty row group.
      3. order_ok: keys are strictly ascending along the chain.

    Returns:
        (keys, presence_ok, groups_ok, order_ok)
    """
    keys = []
    groups_ok = True
    order_ok = True

    prev_key = None
    for leaf in tree.iter_leaf_nodes():
        for key, group in zip(leaf.keys, leaf.data):
            if not group:
                groups_ok = False
            if prev_key is not None and key <= prev_key:
                order_ok = False
            keys.append(key)
            prev_key = key

    presence_ok = True
    if expected_keys is not None:
        presence_ok = sorted(keys) == sorted(set(expected_keys)) and len(keys) == len(set(expected_keys))

    return keys, presence_ok, groups_ok, order_ok


def repeated_experiment(size: int, repetitions: int, order: int) -> None:
    """
    Repeatedly build random trees of `size` rows, delete half of them again
    and log averaged shape statistics and timings.
    """
    heights, leaf_counts, fills = [], [], []
    times_build, times_delete = [], []

    for rep in range(repetitions):
        t0 = time.perf_counter()
        tree, rows = random_tree_of_size(size, order, seed=rep)
        times_build.append(time.perf_counter() - t0)

        stats = bptree_stats_(tree)
        assert_invariants(tree, stats)
        heights.append(stats.height)
        leaf_counts.append(stats.leaf_count)
        fills.append(stats.key_count / (stats.node_count * (order - 1)))

        t0 = time.perf_counter()
        for row in shuffled(rows, seed=rep)[: size // 2]:
            tree.delete(row.id)
        times_delete.append(time.perf_counter() - t0)
        assert_invariants(tree, bptree_stats_(tree))

    header = f"{'Metric':<20} {'Avg':>15}"
    logging.info(header)
    logging.info("-" * len(header))
    for name, value in (
        ("Height", mean(heights)),
        ("Leaf count", mean(leaf_counts)),
        ("Fill factor", mean(fills)),
        ("Build time (s)", mean(times_build)),
        ("Delete time (s)", mean(times_delete)),
    ):
        logging.info(f"{name:<20} {value:15.4f}")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    for n in (1000, 10_000):
        for order in (4, 8):
            logging.info(f"---------------- n = {n}, order = {order} ----------------")
            repeated_experiment(size=n, repetitions=3, order=order)
