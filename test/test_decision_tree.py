"""
Tests for the generic DecisionTree.

Covers construction shape checks, lookup (including the free-dimension and
missing-key policy), unary/binary apply and semantic equality.
"""

import numpy as np
import pytest

from hybrid_slam.common.errors import KeyNotFound, ShapeMismatch
from hybrid_slam.common.keys import DiscreteKey, cartesian_product
from hybrid_slam.discrete.decision_tree import DecisionTree, leaf_equal_with

from factor_builders import M1, M2, M3


class TestConstruction:
    """Tests for leaf(), from_values() and from_choice()."""

    def test_leaf_count_is_cardinality_product(self):
        """A tree over keys c1..ck has prod(ci) leaves."""
        tree = DecisionTree.from_values([M1, M3], list(range(6)))
        assert tree.nr_leaves() == 6
        assert tree.labels() == [M1.key, M3.key]

    def test_first_key_is_most_significant(self):
        """Values are row-major: the last key varies fastest."""
        tree = DecisionTree.from_values([M1, M3], ["a", "b", "c", "d", "e", "f"])
        assert tree({M1.key: 0, M3.key: 2}) == "c"
        assert tree({M1.key: 1, M3.key: 0}) == "d"

    def test_every_assignment_resolves(self):
        """Each assignment in the cartesian product selects exactly one leaf."""
        values = list(range(12))
        tree = DecisionTree.from_values([M1, M2, M3], values)
        seen = [tree(a) for a in cartesian_product([M1, M2, M3])]
        assert seen == values

    def test_wrong_value_count_raises(self):
        """Value count must equal the cardinality product."""
        with pytest.raises(ShapeMismatch):
            DecisionTree.from_values([M1], [1, 2, 3])

    def test_tuple_keys_accepted(self):
        """(key, cardinality) pairs are accepted as discrete keys."""
        tree = DecisionTree.from_values([(7, 3)], [0, 1, 2])
        assert tree.discrete_keys() == [DiscreteKey(7, 3)]

    def test_zero_cardinality_rejected(self):
        """A discrete key needs at least one value."""
        with pytest.raises(ShapeMismatch):
            DiscreteKey(5, 0)

    def test_from_choice(self):
        """Explicit choice nodes compose sub-trees."""
        sub0 = DecisionTree.from_values([M2], [1, 2])
        sub1 = DecisionTree.leaf(9)
        tree = DecisionTree.from_choice(M1, [sub0, sub1])
        assert tree({M1.key: 0, M2.key: 1}) == 2
        assert tree({M1.key: 1, M2.key: 0}) == 9

    def test_from_choice_wrong_branch_count(self):
        """from_choice needs one branch per value."""
        with pytest.raises(ShapeMismatch):
            DecisionTree.from_choice(M3, [DecisionTree.leaf(0)] * 2)

    def test_from_choice_repeated_label(self):
        """A label may appear only once along a path."""
        sub = DecisionTree.from_values([M1], [1, 2])
        with pytest.raises(ShapeMismatch):
            DecisionTree.from_choice(M1, [sub, sub])


class TestLookup:
    """Tests for __call__ and choose()."""

    def test_extra_keys_are_free(self):
        """Keys the tree does not branch on are ignored (broadcast)."""
        tree = DecisionTree.from_values([M1], ["x", "y"])
        assert tree({M1.key: 1, M2.key: 0, 999: 5}) == "y"

    def test_missing_key_raises_key_not_found(self):
        """Lookup without a required key raises KeyNotFound (a KeyError)."""
        tree = DecisionTree.from_values([M1, M2], [0, 1, 2, 3])
        with pytest.raises(KeyNotFound) as exc:
            tree({M1.key: 0})
        assert isinstance(exc.value, KeyError)
        assert exc.value.key == M2.key

    def test_out_of_range_value(self):
        """Assignment values must lie in [0, cardinality)."""
        tree = DecisionTree.from_values([M1], [0, 1])
        with pytest.raises(ShapeMismatch):
            tree({M1.key: 2})

    def test_choose_removes_label(self):
        """choose() restricts one label and drops it from the tree."""
        tree = DecisionTree.from_values([M1, M2], [0, 1, 2, 3])
        restricted = tree.choose(M1.key, 1)
        assert restricted.labels() == [M2.key]
        assert restricted({M2.key: 0}) == 2

    def test_choose_absent_label_is_noop(self):
        """Restricting a label the tree does not use leaves it unchanged."""
        tree = DecisionTree.from_values([M1], [4, 5])
        assert tree.choose(M2.key, 1) == tree


class TestApply:
    """Tests for unary apply()."""

    def test_identity_apply_equals_original(self):
        """apply(identity) equals the input tree."""
        tree = DecisionTree.from_values([M1, M3], [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        assert tree.apply(lambda v: v).equals(tree)

    def test_apply_preserves_shape(self):
        """apply() maps leaves and keeps labels and leaf count."""
        tree = DecisionTree.from_values([M1, M3], list(range(6)))
        doubled = tree.apply(lambda v: 2 * v)
        assert doubled.labels() == tree.labels()
        assert doubled.nr_leaves() == 6
        assert doubled.leaves() == [0, 2, 4, 6, 8, 10]

    def test_apply_does_not_mutate(self):
        """The receiver is unchanged after apply()."""
        tree = DecisionTree.from_values([M1], [1, 2])
        tree.apply(lambda v: v + 100)
        assert tree.leaves() == [1, 2]

    def test_none_leaves_propagate(self):
        """Absent leaves flow through apply() like any value."""
        tree = DecisionTree.from_values([M1], [None, 3])
        mapped = tree.apply(lambda v: None if v is None else v + 1)
        assert mapped({M1.key: 0}) is None
        assert mapped({M1.key: 1}) == 4


class TestApply2:
    """Tests for label-keyed binary apply2()."""

    def test_same_labels(self):
        """Trees over the same labels combine leaf by leaf."""
        a = DecisionTree.from_values([M1], [1, 2])
        b = DecisionTree.from_values([M1], [10, 20])
        c = a.apply2(b, lambda x, y: x + y)
        assert c.leaves() == [11, 22]

    def test_disjoint_labels_broadcast(self):
        """Disjoint label sets produce the outer combination."""
        a = DecisionTree.from_values([M1], [1, 2])
        b = DecisionTree.from_values([M3], [10, 20, 30])
        c = a.apply2(b, lambda x, y: x + y)
        assert c.labels() == [M1.key, M3.key]
        assert c.nr_leaves() == 6
        for assignment in cartesian_product([M1, M3]):
            assert c(assignment) == a(assignment) + b(assignment)

    def test_different_key_orders_merge_by_label(self):
        """Merging keys on label identity, not child position."""
        a = DecisionTree.from_values([M1, M2], ["00", "01", "10", "11"])
        # Same function as a, built with M2 at the root
        b = DecisionTree.from_values([M2, M1], ["00", "10", "01", "11"])
        c = a.apply2(b, lambda x, y: (x, y))
        for x, y in c.leaves():
            assert x == y

    def test_result_branches_in_key_order(self):
        """apply2 output branches on labels in ascending key order."""
        a = DecisionTree.from_values([M3, M1], list(range(6)))
        c = a.apply2(DecisionTree.leaf(0), lambda x, y: x + y)
        assert c.to_string().splitlines()[0] == f"Choice({M1.key})"

    def test_leaf_with_leaf(self):
        """Two constant trees combine into a constant tree."""
        c = DecisionTree.leaf(2).apply2(DecisionTree.leaf(3), lambda x, y: x * y)
        assert c.is_leaf()
        assert c({}) == 6

    def test_cardinality_conflict_raises(self):
        """The same label with two cardinalities is ill-formed."""
        a = DecisionTree.from_values([DiscreteKey(100, 2)], [0, 1])
        b = DecisionTree.from_values([DiscreteKey(100, 3)], [0, 1, 2])
        with pytest.raises(ShapeMismatch):
            a.apply2(b, lambda x, y: x)

    def test_absent_leaves_do_not_crash(self):
        """None leaves reach the combine op unchanged."""
        a = DecisionTree.from_values([M1], [None, 1])
        b = DecisionTree.from_values([M2], [2, None])
        c = a.apply2(b, lambda x, y: (x, y))
        assert c({M1.key: 0, M2.key: 1}) == (None, None)
        assert c({M1.key: 1, M2.key: 0}) == (1, 2)


class TestEquality:
    """Tests for semantic equals()."""

    def test_equal_despite_branching_order(self):
        """Equality compares functions, not shapes."""
        a = DecisionTree.from_values([M1, M2], [1, 2, 3, 4])
        b = DecisionTree.from_values([M2, M1], [1, 3, 2, 4])
        assert a.equals(b)
        assert a == b

    def test_constant_tree_equals_expanded(self):
        """A leaf equals a tree with the same value in every branch."""
        a = DecisionTree.leaf(7)
        b = DecisionTree.from_values([M3], [7, 7, 7])
        assert a.equals(b)

    def test_different_values_unequal(self):
        a = DecisionTree.from_values([M1], [1, 2])
        b = DecisionTree.from_values([M1], [1, 3])
        assert not a.equals(b)
        assert a != b

    def test_cardinality_conflict_is_unequal(self):
        """Conflicting cardinalities compare unequal instead of raising."""
        a = DecisionTree.from_values([DiscreteKey(100, 2)], [0, 0])
        b = DecisionTree.from_values([DiscreteKey(100, 3)], [0, 0, 0])
        assert not a.equals(b)

    def test_custom_predicate(self):
        """A tolerance predicate is honoured."""
        a = DecisionTree.from_values([M1], [1.0, 2.0])
        b = DecisionTree.from_values([M1], [1.0 + 1e-12, 2.0])
        assert not a.equals(b, lambda x, y: x == y)
        assert a.equals(b, lambda x, y: abs(x - y) < 1e-9)

    def test_absent_leaf_predicate(self):
        """Both absent are equal; absent vs present are not."""
        pred = leaf_equal_with(lambda x, y: x == y)
        a = DecisionTree.from_values([M1], [None, 1])
        assert a.equals(DecisionTree.from_values([M1], [None, 1]), pred)
        assert not a.equals(DecisionTree.from_values([M1], [0, 1]), pred)

    def test_array_leaves(self):
        """numpy array leaves compare element-wise without ambiguity errors."""
        a = DecisionTree.from_values([M1], [np.zeros(3), np.ones(3)])
        b = DecisionTree.from_values([M1], [np.zeros(3), np.ones(3)])
        c = DecisionTree.from_values([M1], [np.zeros(3), np.full(3, 2.0)])
        assert a == b
        assert a != c
        assert not a.equals(DecisionTree.from_values([M1], [np.zeros(3), np.ones(2)]))


class TestInspection:
    """Tests for items(), fold() and to_string()."""

    def test_items_enumerates_assignments(self):
        tree = DecisionTree.from_values([M1], ["a", "b"])
        assert list(tree.items()) == [({M1.key: 0}, "a"), ({M1.key: 1}, "b")]

    def test_fold_sums_leaves(self):
        tree = DecisionTree.from_values([M3], [1, 2, 3])
        assert tree.fold(lambda v, acc: acc + v, 0) == 6

    def test_to_string_uses_formatter(self):
        tree = DecisionTree.from_values([M1], [1, 2])
        text = tree.to_string("", lambda k: f"m{k - 100}")
        assert "Choice(m0)" in text
        assert "m0=1 Leaf 2" in text
