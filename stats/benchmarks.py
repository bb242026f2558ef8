#!/usr/bin/env python3
"""
Benchmarks for the B+-tree indexes.

This script measures:
 1. Bulk build times (from_rows) for several sizes
 2. Shape statistics of one large tree
 3. Per-insert and per-delete cost into trees of various sizes

Usage:
    python -m stats.benchmarks [--order M] [--sizes 100 1000 10000] [--trials T]
"""
import argparse
import gc
import time
from pprint import pprint
from dataclasses import asdict
from statistics import mean, variance

from bplus_index.base import Row, by_id
from bplus_index.factory import make_bplustree_classes
from bplus_index.bplus_tree_base import BPlusTreeBase, bptree_stats_
from stats.stats_bplus_tree import random_rows, random_tree_of_size


def bench_build(sizes: list[int], order: int) -> None:
    TreeClass, _ = make_bplustree_classes(order)
    for n in sizes:
        rows = random_rows(n)
        t0 = time.perf_counter()
        TreeClass.from_rows(rows, by_id)
        elapsed = time.perf_counter() - t0
        print(f"[bench] from_rows({n}): {elapsed:.4f}s")


def bench_tree_stats(n: int, order: int) -> None:
    tree, _ = random_tree_of_size(n, order)
    print(f"[bench] random_tree_of_size({n}, order={order}) stats:")
    pprint(asdict(bptree_stats_(tree)))


def measure_single_ops(n: int, order: int, trials: int) -> tuple[float, float, float, float]:
    """
    Per-insert and per-delete cost on trees of exactly `n` rows, averaged
    over `trials` independent trees.
    Returns (insert_avg, insert_var, delete_avg, delete_var).
    """
    trees = [random_tree_of_size(n, order, seed=t) for t in range(trials)]
    # Fresh ids above the default key space never collide with existing ones
    fresh = [Row((1 << 21) + t, "bench", 0) for t in range(trials)]

    gc.collect()
    gc.disable()
    try:
        insert_times = []
        for (tree, _), row in zip(trees, fresh):
            t0 = time.perf_counter()
            tree.insert(row)
            insert_times.append(time.perf_counter() - t0)

        delete_times = []
        for tree, rows in trees:
            t0 = time.perf_counter()
            tree.delete(rows[len(rows) // 2].id)
            delete_times.append(time.perf_counter() - t0)
    finally:
        gc.enable()

    return mean(insert_times), variance(insert_times), mean(delete_times), variance(delete_times)


def bench_single_ops(sizes: list[int], order: int, trials: int) -> None:
    for n in sizes:
        ins_avg, ins_var, del_avg, del_var = measure_single_ops(n, order, trials)
        print(f"[bench] Insert into size {n:<7} → avg {ins_avg*1e6:8.2f} µs   σ²={ins_var*1e12:8.2f} µs²")
        print(f"[bench] Delete from size {n:<7} → avg {del_avg*1e6:8.2f} µs   σ²={del_var*1e12:8.2f} µs²")


def main():
    parser = argparse.ArgumentParser(description="B+-tree index benchmarks")
    parser.add_argument("--order", type=int, default=4,
                        help="Branching order of the trees")
    parser.add_argument("--sizes", nargs='+', type=int, default=[100, 1000, 10_000],
                        help="Tree sizes for build and single-op benchmarks")
    parser.add_argument("--trials", type=int, default=100,
                        help="Number of trials for single-op benchmarks")
    args = parser.parse_args()

    BPlusTreeBase.enable_performance_tracking()

    print("\n=== Bulk Build ===")
    bench_build(args.sizes, args.order)

    print("\n=== Tree Stats ===")
    bench_tree_stats(max(args.sizes), args.order)

    print("\n=== Single-Op Benchmarks ===")
    bench_single_ops(args.sizes, args.order, args.trials)

    print("\n=== Operation-Level Performance Breakdown ===")
    print(BPlusTreeBase.get_performance_report())
    BPlusTreeBase.reset_performance_metrics()
    BPlusTreeBase.disable_performance_tracking()


if __name__ == "__main__":
    main()
