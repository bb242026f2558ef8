"""Tests for B+-tree insertion and splitting"""
# pylint: skip-file

import io
import unittest
from contextlib import redirect_stdout

from bplus_index.base import Row, by_age, by_id
from bplus_index.bplus_tree_base import print_pretty
from tests.bplus.base import TreeTestCase


class TestInsertSingleLeaf(TreeTestCase):
    def test_empty_tree_is_single_empty_leaf(self):
        self.assertTrue(self.tree.is_empty())
        self._assert_leaf(self.tree.root, [])
        self.assertIsNone(self.tree.root.parent)
        self.assertIsNone(self.tree.root.next)
        self.expected_height = 1

    def test_insert_single_row(self):
        row = Row(1, "A", 20)
        self.tree.insert(row)
        self._assert_leaf(self.tree.root, [1])
        self.assertIs(self.tree.root.data[0][0], row)
        self.expected_leaf_keys = [1]

    def test_insert_keeps_keys_sorted(self):
        self.build([3, 1, 2])
        self._assert_leaf(self.tree.root, [1, 2, 3])
        self.assertEqual([g[0].id for g in self.tree.root.data], [1, 2, 3])
        self.expected_height = 1


class TestInsertSplits(TreeTestCase):
    def test_fourth_key_splits_root(self):
        self.build([1, 2, 3, 4])
        root = self.tree.root
        self._assert_internal(root, [2])
        self._assert_leaf(root.children[0], [1])
        self._assert_leaf(root.children[1], [2, 3, 4])
        self.assertIs(root.children[0].next, root.children[1])
        self.assertIsNone(root.children[1].next)
        self.expected_height = 2

    def test_scenario_out_of_order_split(self):
        self.build([10, 5, 15, 1])
        root = self.tree.root
        self.assertFalse(root.is_leaf)
        self.assertEqual(len(root.children), 2)
        self._assert_internal(root, [10])
        self._assert_leaf(root.children[0], [1, 5])
        self._assert_leaf(root.children[1], [10, 15])
        self.expected_leaf_keys = [1, 5, 10, 15]

    def test_ascending_seven_keys(self):
        self.build(range(1, 8))
        root = self.tree.root
        self._assert_internal(root, [3])
        left, right = root.children
        self._assert_internal(left, [2])
        self._assert_internal(right, [4, 5])
        self.assertEqual(self._leaf_key_lists(), [[1], [2], [3], [4], [5, 6, 7]])
        self.expected_height = 3

    def test_descending_seven_keys(self):
        self.build(range(7, 0, -1))
        self._assert_internal(self.tree.root, [4, 6])
        self.assertEqual(self._leaf_key_lists(), [[1, 2, 3], [4, 5], [6, 7]])
        self.expected_height = 2

    def test_insertion_order_changes_shape(self):
        self.build([1, 2, 3, 4, 5, 6, 7])
        ascending = self._leaf_key_lists()
        self.build([4, 1, 7, 2, 6, 3, 5])
        shuffled = self._leaf_key_lists()
        self.assertNotEqual(ascending, shuffled)
        self.expected_leaf_keys = list(range(1, 8))

    def test_internal_split_reparents_moved_children(self):
        self.build(range(10, 0, -1))
        self._assert_internal(self.tree.root, [7])
        left, right = self.tree.root.children
        self._assert_internal(left, [3, 5])
        self._assert_internal(right, [9])
        self.assertEqual(
            self._leaf_key_lists(), [[1, 2], [3, 4], [5, 6], [7, 8], [9, 10]]
        )
        self.expected_height = 3

    def test_node_ids_are_assigned_per_tree(self):
        self.build([1, 2, 3, 4])
        root = self.tree.root
        self.assertEqual(root.id, "node_1")
        self.assertEqual([c.id for c in root.children], ["node_0", "node_2"])

        other = self.TreeClass(by_id)
        self.assertEqual(other.root.id, "node_0")


class TestInsertUniqueKeys(TreeTestCase):
    def test_duplicate_key_overwrites(self):
        first = Row(5, "Alice", 25)
        second = Row(5, "Bob", 30)
        self.tree = self.TreeClass.from_rows([first, second], by_id, unique_keys=True)
        self.assertEqual(self.tree.root.keys, [5])
        self.assertEqual(len(self.tree.root.data[0]), 1)
        self.assertIs(self.tree.root.data[0][0], second)

    def test_overwrite_after_splits(self):
        self.build(range(1, 11))
        replacement = Row(7, "Seven", 77)
        self.tree.insert(replacement)
        self.assertEqual(self.tree.retrieve(7), [replacement])
        self.expected_leaf_keys = list(range(1, 11))


class TestInsertDuplicateKeys(TreeTestCase):
    def setUp(self):
        super().setUp()
        self.tree = self.TreeClass(by_age, unique_keys=False)

    def test_three_rows_share_one_slot(self):
        rows = [Row(1, "Alice", 25), Row(2, "Bob", 25), Row(3, "Charlie", 25)]
        for row in rows:
            self.tree.insert(row)
        root = self.tree.root
        self.assertTrue(root.is_leaf)
        self.assertEqual(root.keys, [25])
        self.assertEqual(len(root.data), 1)
        self.assertEqual(len(root.data[0]), 3)
        for stored, row in zip(root.data[0], rows):
            self.assertIs(stored, row)

    def test_duplicate_of_promoted_separator_goes_right(self):
        rows = [Row(i, f"U{i}", age) for i, age in enumerate([10, 5, 30, 1, 20])]
        for row in rows:
            self.tree.insert(row)
        late = Row(99, "Late", 20)
        self.tree.insert(late)

        self._assert_internal(self.tree.root, [10, 20])
        self.assertEqual(self._leaf_key_lists(), [[1, 5], [10], [20, 30]])
        self.assertEqual(self.tree.retrieve(20), [rows[4], late])

    def test_groups_are_never_split(self):
        for i in range(12):
            self.tree.insert(Row(i, f"U{i}", 30 + (i % 4)))
        self.assertEqual(self._all_keys(), [30, 31, 32, 33])
        for age in (30, 31, 32, 33):
            group = self.tree.retrieve(age)
            self.assertEqual([r.id for r in group], [i for i in range(12) if 30 + i % 4 == age])


class TestReadSurface(TreeTestCase):
    def test_retrieve_and_contains(self):
        rows = self.build([8, 3, 5, 1, 9, 7])
        self.assertEqual(self.tree.retrieve(5), [rows[2]])
        self.assertIsNone(self.tree.retrieve(4))
        self.assertIn(9, self.tree)
        self.assertNotIn(2, self.tree)

    def test_retrieve_returns_copy(self):
        self.build([1, 2, 3])
        group = self.tree.retrieve(2)
        group.clear()
        self.assertEqual(len(self.tree.retrieve(2)), 1)

    def test_iter_rows_in_key_order(self):
        self.build([6, 2, 9, 4, 1, 8])
        self.assertEqual([r.id for r in self.tree.iter_rows()], [1, 2, 4, 6, 8, 9])
        self.assertEqual(len(self.tree), 6)

    def test_print_structure_lists_every_page(self):
        self.build([1, 2, 3, 4])
        text = self.tree.print_structure()
        self.assertIn("Internal node_1 keys=[2]", text)
        self.assertIn("Leaf node_0 [1: 1 row(s)] -> node_2", text)
        self.assertIn("Leaf node_2", text)

    def test_print_pretty_one_line_per_level(self):
        self.build([1, 2, 3, 4])
        out = io.StringIO()
        with redirect_stdout(out):
            print_pretty(self.tree)
        lines = out.getvalue().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertTrue(lines[0].startswith("Level 0:"))
        self.assertIn("2 | 3 | 4", lines[1])


if __name__ == "__main__":
    unittest.main()
