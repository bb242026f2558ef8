"""A row set kept indexed by a primary and a secondary B+-tree."""

import logging
from operator import attrgetter
from typing import Iterable, List, Optional

from bplus_index.base import DEFAULT_ORDER, Row, by_age, by_id
from bplus_index.bplus_tree_base import BPlusTreeBase
from bplus_index.exceptions import DuplicateRowError, UnknownIndexError
from bplus_index.factory import make_bplustree_classes
from bplus_index.snapshot import tree_to_json

# Configure logging
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

PRIMARY = "primary"
SECONDARY = "secondary"

INITIAL_ROWS = (
    Row(5, "Alice", 25),
    Row(10, "Bob", 30),
    Row(15, "Charlie", 22),
)

_row_identity = attrgetter("id")


class IndexedTable:
    """
    Rows plus two indexes over them: a clustered primary index on ``id``
    (unique keys) and a secondary index on ``age`` (duplicate keys grouped).

    Mutations go to both trees incrementally. ``rebuild()`` recreates them
    from the row list instead.
    """

    def __init__(self, rows: Optional[Iterable[Row]] = None, order: int = DEFAULT_ORDER):
        self.TreeClass, _ = make_bplustree_classes(order)
        self.rows: List[Row] = []
        self.primary = self._new_tree(unique=True)
        self.secondary = self._new_tree(unique=False)
        for row in rows or ():
            self.add_row(row)

    def __len__(self) -> int:
        return len(self.rows)

    def _new_tree(self, unique: bool) -> BPlusTreeBase:
        if unique:
            return self.TreeClass(by_id, unique_keys=True, identity=_row_identity)
        return self.TreeClass(by_age, unique_keys=False, identity=_row_identity)

    def add_row(self, row: Row) -> None:
        """
        Raises:
            DuplicateRowError: If a row with ``row.id`` is already stored.
        """
        if row.id in self.primary:
            raise DuplicateRowError(row.id)
        self.rows.append(row)
        self.primary.insert(row)
        self.secondary.insert(row)
        logger.debug(f"Added {row!r}")

    def get_row(self, row_id: int) -> Optional[Row]:
        group = self.primary.retrieve(row_id)
        return group[0] if group else None

    def find_by_age(self, age: int) -> List[Row]:
        return self.secondary.retrieve(age) or []

    def delete_row(self, row_id: int) -> Optional[Row]:
        """Remove the row with `row_id` from the table. Returns it, or None."""
        row = self.get_row(row_id)
        if row is None:
            return None
        self.rows = [r for r in self.rows if r.id != row_id]
        self.primary.delete(row.id)
        self.secondary.delete(row.age, row)
        logger.debug(f"Deleted {row!r}")
        return row

    def rebuild(self) -> None:
        """Recreate both indexes from the rows, in their stored order."""
        self.primary = self.TreeClass.from_rows(
            self.rows, by_id, unique_keys=True, identity=_row_identity)
        self.secondary = self.TreeClass.from_rows(
            self.rows, by_age, unique_keys=False, identity=_row_identity)

    def index(self, kind: str) -> BPlusTreeBase:
        if kind == PRIMARY:
            return self.primary
        if kind == SECONDARY:
            return self.secondary
        raise UnknownIndexError(kind)

    def snapshot(self, kind: str, indent: Optional[int] = 2) -> str:
        return tree_to_json(self.index(kind), indent=indent)


def default_table() -> IndexedTable:
    """A table holding the demo rows."""
    return IndexedTable(Row(r.id, r.name, r.age) for r in INITIAL_ROWS)
