"""Factory for order-specialised B+-tree classes"""

from typing import Type, Tuple, Dict
import logging

from bplus_index.base import (
    DEFAULT_ORDER,
    IdentitySelector,
    KeySelector,
    min_keys_for_order,
    validate_order,
)
from bplus_index.bplus_tree_base import BPlusTreeBase, BPlusNodeBase

# Configure logging
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

# Cache for previously created classes to avoid recreating them
_class_cache: Dict[int, Tuple[Type[BPlusTreeBase], Type[BPlusNodeBase]]] = {}


def make_bplustree_classes(order: int = DEFAULT_ORDER) -> Tuple[
    Type[BPlusTreeBase],
    Type[BPlusNodeBase],
]:
    """
    Factory function to generate B+-tree classes specialised for a branching
    order.

    Returns:
        BPlusTreeO – subclass of BPlusTreeBase with NodeClass=BPlusNodeO and
                     ORDER, MAX_KEYS, MIN_KEYS derived from `order`.
        BPlusNodeO – subclass of BPlusNodeBase with ORDER=order.

    Raises:
        ValueError: If `order` cannot be kept balanced by top-down splitting.
    """
    if order in _class_cache:
        logger.debug(f"Using cached classes for order={order}")
        return _class_cache[order]

    validate_order(order)
    logger.debug(f"Creating new classes for order={order}")

    BPlusNodeO = type(
        f"BPlusNode_O{order}",
        (BPlusNodeBase,),
        {
            "ORDER": order,
            "__slots__": (),
        }
    )

    BPlusTreeO = type(
        f"BPlusTree_O{order}",
        (BPlusTreeBase,),
        {
            "NodeClass": BPlusNodeO,
            "ORDER": order,
            "MAX_KEYS": order - 1,
            "MIN_KEYS": min_keys_for_order(order),
            "__slots__": (),
        }
    )
    logger.debug(
        f"Created {BPlusTreeO.__name__} with MAX_KEYS={BPlusTreeO.MAX_KEYS}, "
        f"MIN_KEYS={BPlusTreeO.MIN_KEYS}"
    )

    _class_cache[order] = (BPlusTreeO, BPlusNodeO)
    return BPlusTreeO, BPlusNodeO


def create_bplustree(
    key_selector: KeySelector,
    order: int = DEFAULT_ORDER,
    unique_keys: bool = True,
    identity: IdentitySelector = None,
) -> BPlusTreeBase:
    """
    Create a new empty B+-tree of the given order.

    Args:
        key_selector: Maps a row to its integer key.
        order (int): Maximum number of children per internal page.
        unique_keys (bool): True for primary-key semantics, False to group
            rows that share a key.
        identity: Optional row-identity function for targeted deletes.

    Returns:
        A tree whose root is a single empty leaf.
    """
    BPlusTreeO, _ = make_bplustree_classes(order)
    tree = BPlusTreeO(key_selector, unique_keys=unique_keys, identity=identity)
    logger.debug(f"Created tree instance of type {type(tree).__name__}")
    return tree
