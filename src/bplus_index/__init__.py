"""
Order-M B+-tree indexes over in-memory rows.

Provides a unique-key (primary) and a duplicate-key (secondary) tree engine
with top-down splitting, iterative borrow/merge rebalancing on delete, and
cycle-free snapshots of the resulting shape.
"""

from bplus_index.base import (
    DEFAULT_ORDER,
    Row,
    by_age,
    by_id,
)
from bplus_index.bplus_tree_base import (
    BPlusTreeBase,
    BPlusNodeBase,
    Stats,
    bptree_stats_,
    collect_leaf_keys,
)
from bplus_index.factory import (
    make_bplustree_classes,
    create_bplustree
)
from bplus_index.exceptions import (
    BPlusIndexError,
    DuplicateRowError,
    UnknownIndexError,
)
from bplus_index.table import IndexedTable

__all__ = [
    'DEFAULT_ORDER',
    'Row',
    'by_age',
    'by_id',
    'BPlusTreeBase',
    'BPlusNodeBase',
    'Stats',
    'bptree_stats_',
    'collect_leaf_keys',
    'make_bplustree_classes',
    'create_bplustree',
    'BPlusIndexError',
    'DuplicateRowError',
    'UnknownIndexError',
    'IndexedTable',
]
