"""Rows, selectors and order arithmetic shared by the B+-tree classes."""

import math
from typing import Any, Callable, Dict, Hashable, Optional

DEFAULT_ORDER = 4


class Row:
    """
    Represents a table row indexed by the B+-trees.
    """
    __slots__ = ("id", "name", "age")  # Define slots for memory efficiency

    def __init__(
            self,
            id: int,
            name: str = "",
            age: int = 0
    ):
        """
        Initialize a Row.

        Parameters:
            id (int): The row's primary key.
            name (str): Display name.
            age (int): The secondary index column.
        """
        self.id = id
        self.name = name
        self.age = age

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "age": self.age}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Row):
            return NotImplemented
        return (self.id, self.name, self.age) == (other.id, other.name, other.age)

    __hash__ = None

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return f"{cls}(id={self.id!r}, name={self.name!r}, age={self.age!r})"


KeySelector = Callable[[Any], int]
IdentitySelector = Optional[Callable[[Any], Hashable]]


def by_id(row: Row) -> int:
    """Key selector for the primary index."""
    return row.id


def by_age(row: Row) -> int:
    """Key selector for the secondary index."""
    return row.age


def validate_order(order: int) -> int:
    """
    Check that a branching order can be maintained by top-down splitting.

    Parameters:
        order (int): Maximum number of children of an internal node.

    Returns:
        int: The order, unchanged.

    Raises:
        ValueError: If order is not an even int >= 4. Odd or smaller orders
            leave one half of a proactive internal split below the minimum.
    """
    if not isinstance(order, int) or isinstance(order, bool):
        raise ValueError(f"order must be an int, got {order!r}")
    if order < 4 or order % 2 != 0:
        raise ValueError("order must be an even number >= 4")
    return order


def min_keys_for_order(order: int) -> int:
    """Minimum key count of a non-root node: ceil(order / 2) - 1."""
    return math.ceil(order / 2) - 1
