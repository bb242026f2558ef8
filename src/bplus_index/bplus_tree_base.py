"""B+-tree base implementation"""

from __future__ import annotations
import bisect
import logging
from typing import Any, Iterable, Iterator, List, Optional, Type
from dataclasses import dataclass
import collections

from bplus_index.base import (
    DEFAULT_ORDER,
    IdentitySelector,
    KeySelector,
    min_keys_for_order,
)
from bplus_index.profiling import (
    track_performance,
    PerformanceTracker
)

# Configure logging
logger = logging.getLogger(__name__)
# Clear all handlers to ensure we don't add duplicates
if logger.hasHandlers():
    logger.handlers.clear()
# Add a single handler with formatting
handler = logging.StreamHandler()
formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s')
handler.setFormatter(formatter)
logger.addHandler(handler)
logger.setLevel(logging.INFO)
# Prevent propagation to the root logger to avoid duplicate logs
logger.propagate = False

DEBUG = False


class BPlusNodeBase:
    """
    Base class for B+-tree pages. The factory sets ORDER on each
    order-specialised subclass.

    Attributes:
        id (str): Identifier assigned once by the owning tree.
        keys (List[int]): Strictly ascending keys.
        is_leaf (bool): Whether the page is a leaf.
        children (List[BPlusNodeBase]): Owned child pages (internal only).
        data (List[List[Any]]): One non-empty row group per key (leaf only).
        next (Optional[BPlusNodeBase]): Following leaf in key order.
        parent (Optional[BPlusNodeBase]): Owning internal page, None for the root.
    """
    __slots__ = ("id", "keys", "is_leaf", "children", "data", "next", "parent")

    ORDER: int = DEFAULT_ORDER

    def __init__(
        self,
        node_id: str,
        is_leaf: bool,
        parent: Optional[BPlusNodeBase] = None
    ) -> None:
        self.id = node_id
        self.is_leaf = is_leaf
        self.keys: List[int] = []
        self.children: List[BPlusNodeBase] = []
        self.data: List[List[Any]] = []
        self.next: Optional[BPlusNodeBase] = None
        self.parent = parent

    def is_full(self) -> bool:
        return len(self.keys) >= self.ORDER - 1

    def __repr__(self) -> str:
        kind = "leaf" if self.is_leaf else "internal"
        return f"{self.__class__.__name__}(id={self.id!r}, {kind}, keys={self.keys!r})"


class BPlusTreeBase:
    """
    An order-M B+-tree over rows whose integer key is produced by a key
    selector.

    Under ``unique_keys`` a repeated key replaces the stored row (primary
    index); otherwise rows sharing a key are kept together, in insertion
    order, in one group of a single leaf (secondary index).

    Attributes:
        root (BPlusNodeBase): The root page. Starts as an empty leaf.
        key_selector (Callable): Maps a row to its integer key.
        unique_keys (bool): Duplicate-key policy.
        identity (Optional[Callable]): Maps a row to the value used to find
            it again on targeted deletes. None compares by object identity.
    """
    __slots__ = ("root", "key_selector", "unique_keys", "identity", "_node_counter")

    # Overridden by the factory
    NodeClass: Type[BPlusNodeBase] = BPlusNodeBase
    ORDER: int = DEFAULT_ORDER
    MAX_KEYS: int = DEFAULT_ORDER - 1
    MIN_KEYS: int = min_keys_for_order(DEFAULT_ORDER)

    def __init__(
        self,
        key_selector: KeySelector,
        unique_keys: bool = True,
        identity: IdentitySelector = None
    ):
        self.key_selector = key_selector
        self.unique_keys = unique_keys
        self.identity = identity
        self._node_counter = 0
        self.root: BPlusNodeBase = self._create_node(True)

    @classmethod
    @track_performance(tag="BPlusTree.from_rows")
    def from_rows(
        cls,
        rows: Iterable[Any],
        key_selector: KeySelector,
        unique_keys: bool = True,
        identity: IdentitySelector = None
    ) -> BPlusTreeBase:
        """
        Build a tree by inserting `rows` one at a time in the given order.

        Rows are not sorted first, so the resulting shape depends on their
        order.
        """
        tree = cls(key_selector, unique_keys=unique_keys, identity=identity)
        for row in rows:
            tree.insert(row)
        return tree

    def is_empty(self) -> bool:
        return self.root.is_leaf and not self.root.keys

    def __len__(self) -> int:
        return sum(len(leaf.keys) for leaf in self.iter_leaf_nodes())

    def __contains__(self, key: int) -> bool:
        leaf = self.find_leaf(key)
        i = bisect.bisect_left(leaf.keys, key)
        return i < len(leaf.keys) and leaf.keys[i] == key

    def __str__(self):
        kind = "unique" if self.unique_keys else "non-unique"
        return f"{self.__class__.__name__}(order={self.ORDER}, {kind}, root={self.root!r})"

    __repr__ = __str__

    # Public API
    @track_performance(tag="BPlusTree.insert")
    def insert(self, row: Any) -> None:
        """
        Insert a row, splitting full pages on the way down.

        Args:
            row: The row to index. Its key is ``key_selector(row)``.
        """
        key = self.key_selector(row)
        root = self.root
        if len(root.keys) == self.MAX_KEYS:
            new_root = self._create_node(False)
            new_root.children.append(root)
            root.parent = new_root
            self._split_child(new_root, 0)
            self.root = new_root
            if DEBUG:
                logger.debug(f"Root {root.id} split; new root {new_root.id} keys={new_root.keys}")
        self._insert_non_full(self.root, key, row)

    @track_performance(tag="BPlusTree.delete")
    def delete(self, key: int, row: Any = None) -> None:
        """
        Delete `row` from the group stored under `key`, or the whole key when
        `row` is None. Absent keys and rows are ignored.
        """
        leaf = self.find_leaf(key)
        if not self._delete_from_leaf(leaf, key, row):
            return

        self._refresh_separators_upward(leaf)

        if leaf is not self.root and len(leaf.keys) < self.MIN_KEYS:
            self._rebalance(leaf)

        root = self.root
        if not root.is_leaf and not root.keys:
            self.root = root.children[0]
            self.root.parent = None
            root.children = []
            if DEBUG:
                logger.debug(f"Root {root.id} collapsed into {self.root.id}")

    def find_leaf(self, key: int) -> BPlusNodeBase:
        """Descend to the leaf whose key range covers `key`."""
        node = self.root
        while not node.is_leaf:
            node = node.children[bisect.bisect_right(node.keys, key)]
        return node

    def retrieve(self, key: int) -> Optional[List[Any]]:
        """
        Look up the rows stored under `key`.

        Returns:
            Optional[List[Any]]: A copy of the row group, or None if the key
            is absent.
        """
        leaf = self.find_leaf(key)
        i = bisect.bisect_left(leaf.keys, key)
        if i < len(leaf.keys) and leaf.keys[i] == key:
            return list(leaf.data[i])
        return None

    def iter_leaf_nodes(self) -> Iterator[BPlusNodeBase]:
        """
        Iterates over all leaves, starting from the leftmost leaf and
        following `next` pointers.
        """
        current = self.root
        while not current.is_leaf:
            current = current.children[0]
        while current is not None:
            yield current
            current = current.next

    def iter_rows(self) -> Iterator[Any]:
        """Yield every row in ascending key order."""
        for leaf in self.iter_leaf_nodes():
            for group in leaf.data:
                yield from group

    def height(self) -> int:
        levels = 1
        node = self.root
        while not node.is_leaf:
            node = node.children[0]
            levels += 1
        return levels

    # Performance tracking
    @staticmethod
    def get_performance_report(sort_by: str = 'total_time') -> str:
        return PerformanceTracker.get_instance().report(sort_by)

    @staticmethod
    def reset_performance_metrics() -> None:
        PerformanceTracker.get_instance().reset()

    @staticmethod
    def enable_performance_tracking() -> None:
        PerformanceTracker.get_instance().enable()

    @staticmethod
    def disable_performance_tracking() -> None:
        PerformanceTracker.get_instance().disable()

    # Private Methods
    def _create_node(
        self, is_leaf: bool, parent: Optional[BPlusNodeBase] = None
    ) -> BPlusNodeBase:
        node = self.NodeClass(f"node_{self._node_counter}", is_leaf, parent)
        self._node_counter += 1
        return node

    def _insert_non_full(self, node: BPlusNodeBase, key: int, row: Any) -> None:
        """Walk down from a non-full `node`, splitting full children first."""
        while not node.is_leaf:
            i = bisect.bisect_right(node.keys, key)
            if len(node.children[i].keys) == self.MAX_KEYS:
                self._split_child(node, i)
                # Keys equal to the promoted separator belong to the right half
                if key >= node.keys[i]:
                    i += 1
            node = node.children[i]
        self._insert_into_leaf(node, key, row)

    def _insert_into_leaf(self, leaf: BPlusNodeBase, key: int, row: Any) -> None:
        i = bisect.bisect_left(leaf.keys, key)
        if i < len(leaf.keys) and leaf.keys[i] == key:
            if self.unique_keys:
                leaf.data[i] = [row]
            else:
                leaf.data[i].append(row)
            return
        leaf.keys.insert(i, key)
        leaf.data.insert(i, [row])

    def _split_child(self, parent: BPlusNodeBase, index: int) -> None:
        """
        Split the full child at `index` of `parent` into two siblings.

        Leaves copy their right half's first key up as the separator and are
        spliced into the leaf chain. Internal pages move their middle key up.
        Split points are slot indices, so a duplicate-key group always moves
        as a whole.
        """
        child = parent.children[index]
        sibling = self._create_node(child.is_leaf, parent)
        mid = len(child.keys) // 2

        if child.is_leaf:
            sibling.keys = child.keys[mid:]
            sibling.data = child.data[mid:]
            del child.keys[mid:]
            del child.data[mid:]
            sibling.next = child.next
            child.next = sibling
            separator = sibling.keys[0]
        else:
            separator = child.keys[mid]
            sibling.keys = child.keys[mid + 1:]
            sibling.children = child.children[mid + 1:]
            del child.keys[mid:]
            del child.children[mid + 1:]
            for grandchild in sibling.children:
                grandchild.parent = sibling

        parent.keys.insert(index, separator)
        parent.children.insert(index + 1, sibling)

    def _matches_row(self, candidate: Any, row: Any) -> bool:
        if self.identity is None:
            return candidate is row
        return self.identity(candidate) == self.identity(row)

    def _delete_from_leaf(self, leaf: BPlusNodeBase, key: int, row: Any) -> bool:
        """Remove the target from `leaf`. Returns whether anything was removed."""
        if row is not None:
            for i, slot_key in enumerate(leaf.keys):
                if slot_key != key:
                    continue
                group = leaf.data[i]
                for pos, candidate in enumerate(group):
                    if self._matches_row(candidate, row):
                        del group[pos]
                        if not group:
                            del leaf.keys[i]
                            del leaf.data[i]
                        return True
            return False

        removed = False
        i = 0
        while i < len(leaf.keys):
            if leaf.keys[i] == key:
                del leaf.keys[i]
                del leaf.data[i]
                removed = True
            else:
                i += 1
        return removed

    @staticmethod
    def _subtree_min_key(node: BPlusNodeBase) -> Optional[int]:
        while not node.is_leaf:
            node = node.children[0]
        return node.keys[0] if node.keys else None

    def _refresh_separators_upward(self, start: BPlusNodeBase) -> None:
        """
        Re-derive the separator in front of every non-leftmost page on the
        path from `start` to the root from the page's current minimum key.
        """
        node = start
        while node.parent is not None:
            parent = node.parent
            idx = parent.children.index(node)
            if idx > 0:
                min_key = self._subtree_min_key(node)
                if min_key is not None:
                    parent.keys[idx - 1] = min_key
            node = parent

    def _rebalance(self, start: BPlusNodeBase) -> None:
        """
        Fix underflow from `start` upwards. Borrowing ends the walk; a merge
        may leave the parent short, so the loop continues one level up.
        """
        node = start
        while node is not self.root and len(node.keys) < self.MIN_KEYS:
            parent = node.parent
            idx = parent.children.index(node)
            left = parent.children[idx - 1] if idx > 0 else None
            right = parent.children[idx + 1] if idx + 1 < len(parent.children) else None

            # Left sibling is preferred when both have keys to spare
            if left is not None and len(left.keys) > self.MIN_KEYS:
                self._borrow_from_left(parent, idx)
                return
            if right is not None and len(right.keys) > self.MIN_KEYS:
                self._borrow_from_right(parent, idx)
                return

            if left is not None:
                self._merge_with_left(parent, idx)
            else:
                self._merge_with_right(parent, idx)
            node = parent

    def _borrow_from_left(self, parent: BPlusNodeBase, idx: int) -> None:
        node = parent.children[idx]
        left = parent.children[idx - 1]

        if node.is_leaf:
            borrowed_key = left.keys.pop()
            borrowed_group = left.data.pop()
            if not left.keys:
                logger.warning(f"Borrow emptied left sibling {left.id}; a merge was due")
            node.keys.insert(0, borrowed_key)
            node.data.insert(0, borrowed_group)
            parent.keys[idx - 1] = borrowed_key
        else:
            borrowed_key = left.keys.pop()
            borrowed_child = left.children.pop()
            node.keys.insert(0, parent.keys[idx - 1])
            node.children.insert(0, borrowed_child)
            borrowed_child.parent = node
            parent.keys[idx - 1] = borrowed_key
        logger.debug(f"{node.id} borrowed {borrowed_key} from left sibling {left.id}")

    def _borrow_from_right(self, parent: BPlusNodeBase, idx: int) -> None:
        node = parent.children[idx]
        right = parent.children[idx + 1]

        if node.is_leaf:
            borrowed_key = right.keys.pop(0)
            borrowed_group = right.data.pop(0)
            node.keys.append(borrowed_key)
            node.data.append(borrowed_group)
            # The donor is read only after the slot has left it
            if right.keys:
                parent.keys[idx] = right.keys[0]
            else:
                logger.warning(f"Borrow emptied right sibling {right.id}; a merge was due")
        else:
            borrowed_key = right.keys.pop(0)
            borrowed_child = right.children.pop(0)
            node.keys.append(parent.keys[idx])
            node.children.append(borrowed_child)
            borrowed_child.parent = node
            parent.keys[idx] = borrowed_key
        logger.debug(f"{node.id} borrowed {borrowed_key} from right sibling {right.id}")

    def _merge_with_left(self, parent: BPlusNodeBase, idx: int) -> None:
        node = parent.children[idx]
        left = parent.children[idx - 1]
        self._absorb(left, node, parent.keys[idx - 1])
        del parent.keys[idx - 1]
        del parent.children[idx]
        logger.debug(f"{node.id} merged into left sibling {left.id}")

    def _merge_with_right(self, parent: BPlusNodeBase, idx: int) -> None:
        node = parent.children[idx]
        right = parent.children[idx + 1]
        self._absorb(node, right, parent.keys[idx])
        del parent.keys[idx]
        del parent.children[idx + 1]
        logger.debug(f"Right sibling {right.id} merged into {node.id}")

    @staticmethod
    def _absorb(left: BPlusNodeBase, right: BPlusNodeBase, separator: int) -> None:
        """Append the contents of `right` to its left neighbour `left`."""
        if left.is_leaf:
            left.keys.extend(right.keys)
            left.data.extend(right.data)
            left.next = right.next
        else:
            left.keys.append(separator)
            left.keys.extend(right.keys)
            for child in right.children:
                child.parent = left
            left.children.extend(right.children)
        right.parent = None
        right.next = None
        right.children = []

    def print_structure(self, indent: int = 0) -> str:
        """Indented outline of every page, one line per page."""
        lines = []

        def _walk(node: BPlusNodeBase, depth: int) -> None:
            prefix = ' ' * (indent + 4 * depth)
            if node.is_leaf:
                groups = ", ".join(f"{k}: {len(g)} row(s)" for k, g in zip(node.keys, node.data))
                nxt = node.next.id if node.next is not None else "None"
                lines.append(f"{prefix}Leaf {node.id} [{groups}] -> {nxt}")
                return
            lines.append(f"{prefix}Internal {node.id} keys={node.keys}")
            for child in node.children:
                _walk(child, depth + 1)

        _walk(self.root, 0)
        return "\n".join(lines)


@dataclass
class Stats:
    height: int
    node_count: int
    internal_count: int
    leaf_count: int
    key_count: int
    row_count: int
    least_key: Optional[int]
    greatest_key: Optional[int]
    keys_sorted: bool
    is_search_tree: bool
    occupancy_ok: bool
    leaves_same_depth: bool
    shape_consistent: bool
    groups_non_empty: bool
    parent_links_ok: bool
    ids_unique: bool
    linked_leaf_nodes: bool
    leaf_keys_in_order: bool


def bptree_stats_(t: BPlusTreeBase) -> Stats:
    """
    Returns aggregated statistics and invariant flags for a B+-tree in
    **O(n)** time.
    """
    stats = Stats(height              = 0,
                  node_count          = 0,
                  internal_count      = 0,
                  leaf_count          = 0,
                  key_count           = 0,
                  row_count           = 0,
                  least_key           = None,
                  greatest_key        = None,
                  keys_sorted         = True,
                  is_search_tree      = True,
                  occupancy_ok        = True,
                  leaves_same_depth   = True,
                  shape_consistent    = True,
                  groups_non_empty    = True,
                  parent_links_ok     = True,
                  ids_unique          = True,
                  linked_leaf_nodes   = True,
                  leaf_keys_in_order  = True,)

    root = t.root
    leaf_depths = set()
    seen_ids = set()
    leaves_in_order: List[BPlusNodeBase] = []

    def _visit(node, parent, depth, lo, hi):
        stats.node_count += 1
        if node.id in seen_ids:
            stats.ids_unique = False
        seen_ids.add(node.id)

        if node.parent is not parent:
            stats.parent_links_ok = False

        keys = node.keys
        n = len(keys)
        if any(a >= b for a, b in zip(keys, keys[1:])):
            stats.keys_sorted = False
        if n > t.MAX_KEYS or (node is not root and n < t.MIN_KEYS):
            stats.occupancy_ok = False

        # ---------- leaf ---------------------------------
        if node.is_leaf:
            stats.leaf_count += 1
            stats.key_count += n
            stats.row_count += sum(len(g) for g in node.data)
            leaf_depths.add(depth)
            leaves_in_order.append(node)
            if len(node.data) != n or node.children:
                stats.shape_consistent = False
            if any(not g for g in node.data):
                stats.groups_non_empty = False
            for k in keys:
                if (lo is not None and k < lo) or (hi is not None and k >= hi):
                    stats.is_search_tree = False
            return

        # ---------- internal ------------------------------
        stats.internal_count += 1
        if len(node.children) != n + 1 or node.data or node.next is not None:
            stats.shape_consistent = False
        for i, child in enumerate(node.children):
            child_lo = keys[i - 1] if 0 < i <= n else lo
            child_hi = keys[i] if i < n else hi
            _visit(child, node, depth + 1, child_lo, child_hi)

    _visit(root, None, 0, None, None)

    stats.leaves_same_depth = len(leaf_depths) <= 1
    stats.height = max(leaf_depths) + 1 if leaf_depths else 0

    # ---------- leaf chain walk ------------------------------
    chain = []
    prev_key = None
    leaf = leaves_in_order[0] if leaves_in_order else None
    while leaf is not None and len(chain) <= len(leaves_in_order):
        chain.append(leaf)
        for key in leaf.keys:
            if prev_key is not None and key <= prev_key:
                stats.leaf_keys_in_order = False
            if stats.least_key is None:
                stats.least_key = key
            stats.greatest_key = key
            prev_key = key
        leaf = leaf.next

    if len(chain) != len(leaves_in_order) or any(
        a is not b for a, b in zip(chain, leaves_in_order)
    ):
        stats.linked_leaf_nodes = False

    return stats


def collect_leaf_keys(tree: BPlusTreeBase) -> List[int]:
    out = []
    for leaf in tree.iter_leaf_nodes():
        out.extend(leaf.keys)
    return out


def print_pretty(tree: BPlusTreeBase) -> None:
    """
    Print the tree so that all pages of one level share a line, from the
    root down to the leaves, with every page centred in a uniform column.
    """
    SEP = " | "

    layers = collections.defaultdict(list)  # depth -> list of page texts
    max_len = 0

    frontier = [(tree.root, 0)]
    while frontier:
        node, depth = frontier.pop(0)
        text = SEP.join(str(k) for k in node.keys) or "-"
        layers[depth].append(text)
        max_len = max(max_len, len(text))
        if not node.is_leaf:
            frontier.extend((child, depth + 1) for child in node.children)

    column_width = max_len + 2
    widest = max(len(texts) for texts in layers.values())

    for depth in sorted(layers):
        texts = layers[depth]
        pad = " " * ((widest - len(texts)) * column_width // 2)
        line = "".join(txt.center(column_width) for txt in texts)
        print(f"Level {depth}: {pad}{line}")
