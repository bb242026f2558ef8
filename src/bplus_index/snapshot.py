"""
Cycle-free views of a B+-tree for consumers outside the engine.

A snapshot is only valid until the next insert or delete on the tree it was
taken from. ``parent`` references are never emitted and ``next`` is reduced to
the neighbouring leaf's id, so the output is a plain tree.
"""

import json
from typing import Any, Dict, List, Optional

from bplus_index.bplus_tree_base import BPlusNodeBase, BPlusTreeBase


def encode_row(row: Any) -> Any:
    """Rows exposing ``to_dict()`` are expanded, anything else passes through."""
    to_dict = getattr(row, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return row


def _next_ref(node: BPlusNodeBase) -> Optional[Dict[str, Any]]:
    if node.next is None:
        return None
    return {"id": node.next.id, "is_leaf": node.next.is_leaf}


def node_to_dict(node: BPlusNodeBase) -> Dict[str, Any]:
    """
    Serialise `node` and its subtree.

    Leaves carry ``data`` (row groups) and ``next``; internal pages carry
    ``children``.
    """
    out: Dict[str, Any] = {
        "id": node.id,
        "keys": list(node.keys),
        "is_leaf": node.is_leaf,
    }
    if node.is_leaf:
        out["data"] = [[encode_row(r) for r in group] for group in node.data]
        out["next"] = _next_ref(node)
    else:
        out["children"] = [node_to_dict(child) for child in node.children]
    return out


def tree_to_dict(tree: BPlusTreeBase) -> Dict[str, Any]:
    return {
        "order": tree.ORDER,
        "unique_keys": tree.unique_keys,
        "root": node_to_dict(tree.root),
    }


def tree_to_json(tree: BPlusTreeBase, indent: Optional[int] = 2) -> str:
    return json.dumps(tree_to_dict(tree), indent=indent)


def leaf_views(tree: BPlusTreeBase, index_type: str) -> List[Dict[str, Any]]:
    """
    One attribute record per leaf, left to right, as a visualiser consumes
    them: the leaf's keys and rows, the name of the next leaf and which index
    the leaf belongs to.
    """
    views = []
    for leaf in tree.iter_leaf_nodes():
        views.append({
            "name": f"Leaf-{leaf.id}",
            "keys": list(leaf.keys),
            "data": [[encode_row(r) for r in group] for group in leaf.data],
            "is_leaf": True,
            "next_id": f"Leaf-{leaf.next.id}" if leaf.next is not None else None,
            "index_type": index_type,
        })
    return views
