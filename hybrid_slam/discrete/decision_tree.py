"""
Generic persistent decision tree keyed by discrete-variable assignments.

A tree is either a leaf holding one value, or a choice node that branches on
one discrete label and holds exactly cardinality(label) children. Trees are
immutable: apply/apply2/choose build new nodes and share unchanged subtrees.

Properties:
- Leaves are never merged, so from_values() over keys k1..kn yields
  prod(card(ki)) leaves and every assignment resolves to exactly one leaf.
- apply2() combines by label identity, not child position. The result branches
  on the union of both label sets in ascending key order.
- equals() is semantic: same assignment -> value function, any branching order.
- None is an ordinary leaf value (absent branch); nothing here treats it
  specially.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

import numpy as np

from hybrid_slam.common.errors import KeyNotFound, ShapeMismatch
from hybrid_slam.common.keys import (
    Assignment,
    DiscreteKey,
    Key,
    KeyFormatter,
    as_discrete_keys,
    cardinality_product,
    cartesian_product,
    default_key_formatter,
    merge_discrete_keys,
)

Y = TypeVar("Y")
Z = TypeVar("Z")


# =============================================================================
# Nodes
# =============================================================================


@dataclass(frozen=True, eq=False)
class _Leaf:
    value: Any


@dataclass(frozen=True, eq=False)
class _Choice:
    label: Key
    branches: Tuple[Any, ...]  # Tuple[_Node, ...]


def _choose(node, label: Key, index: int):
    """Restrict node to label == index (no-op where label does not occur)."""
    if isinstance(node, _Leaf):
        return node
    if node.label == label:
        return node.branches[index]
    return _Choice(node.label, tuple(_choose(b, label, index) for b in node.branches))


def _map(node, op):
    if isinstance(node, _Leaf):
        return _Leaf(op(node.value))
    return _Choice(node.label, tuple(_map(b, op) for b in node.branches))


def _combine(f, g, op, keys: Sequence[DiscreteKey]):
    # keys is the sorted union of labels still present in f or g
    if not keys:
        return _Leaf(op(f.value, g.value))
    head, rest = keys[0], keys[1:]
    return _Choice(
        head.key,
        tuple(
            _combine(_choose(f, head.key, v), _choose(g, head.key, v), op, rest)
            for v in range(head.cardinality)
        ),
    )


def _build(keys: Sequence[DiscreteKey], values: Sequence[Any]):
    if not keys:
        return _Leaf(values[0])
    head, rest = keys[0], keys[1:]
    stride = len(values) // head.cardinality
    return _Choice(
        head.key,
        tuple(_build(rest, values[i * stride:(i + 1) * stride]) for i in range(head.cardinality)),
    )


def _collect_keys(node, out: Dict[Key, int]) -> None:
    if isinstance(node, _Leaf):
        return
    card = len(node.branches)
    seen = out.get(node.label)
    if seen is not None and seen != card:
        raise ShapeMismatch(
            f"DecisionTree: label {node.label} branches {seen} and {card} ways"
        )
    out[node.label] = card
    for b in node.branches:
        _collect_keys(b, out)


def _leaves(node) -> Iterator[Any]:
    if isinstance(node, _Leaf):
        yield node.value
        return
    for b in node.branches:
        yield from _leaves(b)


def _default_leaf_equal(a: Any, b: Any) -> bool:
    if a is b:
        return True
    if a is None or b is None:
        return False
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        return bool(np.array_equal(a, b))
    equals = getattr(a, "equals", None)
    if callable(equals):
        return bool(equals(b))
    return bool(a == b)


# =============================================================================
# DecisionTree
# =============================================================================


class DecisionTree(Generic[Y]):
    """
    Immutable mapping from discrete assignments to leaf values.

    Build with leaf(), from_values() or from_choice(); never mutate _root.
    """

    __slots__ = ("_root",)

    def __init__(self, root):
        if not isinstance(root, (_Leaf, _Choice)):
            raise TypeError(f"DecisionTree: expected a tree node, got {type(root).__name__}")
        self._root = root

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def leaf(cls, value: Y) -> "DecisionTree[Y]":
        return cls(_Leaf(value))

    @classmethod
    def from_values(cls, keys: Sequence, values: Sequence[Y]) -> "DecisionTree[Y]":
        """
        Canonical tree branching on keys in the order given.

        values are in row-major order: the first key is the root and the last
        key varies fastest (see cartesian_product()).
        """
        keys = as_discrete_keys(keys)
        values = list(values)
        expected = cardinality_product(keys)
        if len(values) != expected:
            raise ShapeMismatch(
                f"DecisionTree.from_values: {len(values)} values for keys "
                f"{[str(k) for k in keys]} (expected {expected})"
            )
        return cls(_build(keys, values))

    @classmethod
    def from_choice(cls, key, branches: Sequence["DecisionTree[Y]"]) -> "DecisionTree[Y]":
        """Choice node on key whose i-th child is branches[i]."""
        (key,) = as_discrete_keys([key])
        branches = list(branches)
        if len(branches) != key.cardinality:
            raise ShapeMismatch(
                f"DecisionTree.from_choice: {len(branches)} branches for key {key}"
            )
        tree = cls(_Choice(key.key, tuple(b._root for b in branches)))
        tree.discrete_keys()  # label occurs twice on a path / cardinality conflicts
        for b in branches:
            if key.key in b.labels():
                raise ShapeMismatch(
                    f"DecisionTree.from_choice: key {key.key} already branched on below"
                )
        return tree

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_leaf(self) -> bool:
        return isinstance(self._root, _Leaf)

    def __call__(self, assignment: Mapping[Key, int]) -> Y:
        """
        Leaf selected by assignment.

        Keys the tree does not branch on are ignored. A key the tree needs but
        the assignment lacks raises KeyNotFound.
        """
        node = self._root
        while isinstance(node, _Choice):
            if node.label not in assignment:
                raise KeyNotFound(node.label, "DecisionTree.__call__")
            index = int(assignment[node.label])
            if not 0 <= index < len(node.branches):
                raise ShapeMismatch(
                    f"DecisionTree.__call__: value {index} out of range for key "
                    f"{node.label} with cardinality {len(node.branches)}"
                )
            node = node.branches[index]
        return node.value

    def choose(self, label: Key, index: int) -> "DecisionTree[Y]":
        """Tree restricted to label == index; label no longer occurs in it."""
        cardinality = self.discrete_keys_dict().get(label)
        if cardinality is not None and not 0 <= index < cardinality:
            raise ShapeMismatch(
                f"DecisionTree.choose: value {index} out of range for key {label}"
            )
        return DecisionTree(_choose(self._root, label, index))

    def discrete_keys_dict(self) -> Dict[Key, int]:
        out: Dict[Key, int] = {}
        _collect_keys(self._root, out)
        return out

    def discrete_keys(self) -> List[DiscreteKey]:
        """Labels branched on anywhere in the tree, sorted by key."""
        return sorted(DiscreteKey(k, c) for k, c in self.discrete_keys_dict().items())

    def labels(self) -> List[Key]:
        return sorted(self.discrete_keys_dict())

    def leaves(self) -> List[Y]:
        return list(_leaves(self._root))

    def nr_leaves(self) -> int:
        return sum(1 for _ in _leaves(self._root))

    def items(self) -> Iterator[Tuple[Assignment, Y]]:
        """(assignment, value) for every assignment to the tree's own labels."""
        for assignment in cartesian_product(self.discrete_keys()):
            yield assignment, self(assignment)

    def fold(self, op: Callable[[Y, Z], Z], initial: Z) -> Z:
        acc = initial
        for value in _leaves(self._root):
            acc = op(value, acc)
        return acc

    # -------------------------------------------------------------------------
    # Algebra
    # -------------------------------------------------------------------------

    def apply(self, op: Callable[[Y], Z]) -> "DecisionTree[Z]":
        """Map op over every leaf, preserving shape."""
        return DecisionTree(_map(self._root, op))

    def apply2(self, other: "DecisionTree[Z]", op: Callable[[Y, Z], Any]) -> "DecisionTree[Any]":
        """
        Leaf-wise combine with another tree.

        For every assignment a over the union of labels the result holds
        op(self(a), other(a)). Labels present in only one tree broadcast.
        """
        keys = merge_discrete_keys(self.discrete_keys(), other.discrete_keys())
        return DecisionTree(_combine(self._root, other._root, op, keys))

    def equals(
        self,
        other: "DecisionTree",
        leaf_equal: Callable[[Any, Any], bool] = _default_leaf_equal,
    ) -> bool:
        """Same assignment -> value function under leaf_equal."""
        if not isinstance(other, DecisionTree):
            return False
        try:
            same = self.apply2(other, leaf_equal)
        except ShapeMismatch:
            return False
        return all(_leaves(same._root))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DecisionTree):
            return NotImplemented
        return self.equals(other)

    __hash__ = None

    # -------------------------------------------------------------------------
    # Printing
    # -------------------------------------------------------------------------

    def to_string(
        self,
        prefix: str = "",
        key_formatter: KeyFormatter = default_key_formatter,
        value_formatter: Optional[Callable[[Y], str]] = None,
    ) -> str:
        value_formatter = value_formatter or str
        lines: List[str] = []

        def visit(node, indent: str, edge: str) -> None:
            if isinstance(node, _Leaf):
                lines.append(f"{indent}{edge}Leaf {value_formatter(node.value)}")
                return
            lines.append(f"{indent}{edge}Choice({key_formatter(node.label)})")
            for i, b in enumerate(node.branches):
                visit(b, indent + " ", f"{key_formatter(node.label)}={i} ")

        visit(self._root, prefix, "")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"DecisionTree(keys={[str(k) for k in self.discrete_keys()]}, nr_leaves={self.nr_leaves()})"


def leaf_equal_with(equal: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    """
    Wrap a predicate on present values so None (absent) leaves compare safely:
    both absent -> equal, one absent -> unequal.
    """

    def pred(a: Any, b: Any) -> bool:
        if a is None or b is None:
            return a is None and b is None
        return bool(equal(a, b))

    return pred
