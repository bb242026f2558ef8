"""Tests for the order-specialised class factory"""
# pylint: skip-file

import unittest

from bplus_index.factory import make_bplustree_classes, create_bplustree
from bplus_index.base import by_id, min_keys_for_order
from bplus_index.bplus_tree_base import BPlusTreeBase, BPlusNodeBase


class TestFactory(unittest.TestCase):
    def test_classes_are_cached(self):
        self.assertIs(make_bplustree_classes(4), make_bplustree_classes(4))

    def test_class_attributes(self):
        TreeClass, NodeClass = make_bplustree_classes(6)
        self.assertEqual(TreeClass.__name__, "BPlusTree_O6")
        self.assertEqual(NodeClass.__name__, "BPlusNode_O6")
        self.assertTrue(issubclass(TreeClass, BPlusTreeBase))
        self.assertTrue(issubclass(NodeClass, BPlusNodeBase))
        self.assertIs(TreeClass.NodeClass, NodeClass)
        self.assertEqual(TreeClass.ORDER, 6)
        self.assertEqual(TreeClass.MAX_KEYS, 5)
        self.assertEqual(TreeClass.MIN_KEYS, 2)
        self.assertEqual(NodeClass.ORDER, 6)

    def test_min_keys(self):
        self.assertEqual(min_keys_for_order(4), 1)
        self.assertEqual(min_keys_for_order(8), 3)

    def test_invalid_orders(self):
        for order in (0, 2, 3, 5, 7, "4", True):
            with self.subTest(order=order):
                with self.assertRaises(ValueError):
                    make_bplustree_classes(order)

    def test_create_bplustree(self):
        tree = create_bplustree(by_id, order=8, unique_keys=False)
        self.assertEqual(type(tree).__name__, "BPlusTree_O8")
        self.assertFalse(tree.unique_keys)
        self.assertTrue(tree.is_empty())
        self.assertIsInstance(tree.root, make_bplustree_classes(8)[1])

    def test_is_full_uses_node_order(self):
        _, NodeClass = make_bplustree_classes(4)
        node = NodeClass("n", True)
        node.keys = [1, 2]
        self.assertFalse(node.is_full())
        node.keys.append(3)
        self.assertTrue(node.is_full())


if __name__ == "__main__":
    unittest.main()
