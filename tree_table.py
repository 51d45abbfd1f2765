from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Iterable, Mapping, Sequence

from interpret_errors import MalformedTopology, NodeNotFound

logger = logging.getLogger(__name__)

TOPOLOGY_COLUMNS = (
    "tree_index",
    "split_index",
    "split_feature",
    "node_parent",
    "internal_value",
    "leaf_index",
    "leaf_parent",
    "leaf_value",
)


@dataclass(frozen=True)
class InternalNode:
    split_index: int
    split_feature: str
    node_parent: int | None
    internal_value: float


@dataclass(frozen=True)
class LeafNode:
    leaf_index: int
    leaf_parent: int | None
    leaf_value: float


@dataclass(frozen=True, eq=False)
class Tree:
    """One tree of the ensemble, nodes addressed by split/leaf index."""

    tree_index: int
    internal_nodes: Mapping[int, InternalNode] = field(default_factory=dict)
    leaves: Mapping[int, LeafNode] = field(default_factory=dict)

    @property
    def num_leaves(self) -> int:
        return len(self.leaves)

    @property
    def root(self) -> InternalNode | LeafNode:
        for node in self.internal_nodes.values():
            if node.node_parent is None:
                return node
        for leaf in self.leaves.values():
            if leaf.leaf_parent is None:
                return leaf
        raise MalformedTopology(f"tree {self.tree_index} has no root node")

    def internal_node(self, split_index: int) -> InternalNode:
        try:
            return self.internal_nodes[split_index]
        except KeyError:
            raise NodeNotFound(
                f"split {split_index} not found in tree {self.tree_index}",
                tree_index=self.tree_index,
                node_id=split_index,
            ) from None

    def leaf(self, leaf_index: int) -> LeafNode:
        try:
            return self.leaves[leaf_index]
        except KeyError:
            raise NodeNotFound(
                f"leaf {leaf_index} not found in tree {self.tree_index}",
                tree_index=self.tree_index,
                node_id=leaf_index,
            ) from None

    def leaf_depth(self, leaf_index: int) -> int:
        depth = 0
        parent = self.leaf(leaf_index).leaf_parent
        while parent is not None:
            depth += 1
            if depth > len(self.internal_nodes):
                raise MalformedTopology(f"cycle in parent links of tree {self.tree_index}")
            parent = self.internal_node(parent).node_parent
        return depth

    @property
    def max_depth(self) -> int:
        if not self.leaves:
            return 0
        return max(self.leaf_depth(leaf_index) for leaf_index in self.leaves)


def _is_null(value: Any) -> bool:
    if value is None:
        return True
    # NaN and NaT compare unequal to themselves; pandas.NA has no truth value.
    try:
        return bool(value != value)
    except TypeError:
        return True


def _to_float(value: Any, column: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MalformedTopology(f"{column} must be numeric or null, got {value!r}") from None


def _as_index(value: Any, column: str) -> int | None:
    if _is_null(value):
        return None
    as_float = _to_float(value, column)
    if not as_float.is_integer():
        raise MalformedTopology(f"{column} must be integral, got {value!r}")
    return int(as_float)


def _as_value(value: Any, column: str) -> float:
    if _is_null(value):
        raise MalformedTopology(f"{column} must not be null")
    return _to_float(value, column)


def _feature_name(value: Any, feature_names: Sequence[str] | None) -> str:
    if isinstance(value, str):
        return value
    idx = _as_index(value, "split_feature")
    if idx is None:
        raise MalformedTopology("internal node without split_feature")
    if feature_names is None:
        return f"Column_{idx}"
    if not 0 <= idx < len(feature_names):
        raise MalformedTopology(
            f"split_feature {idx} out of range for {len(feature_names)} feature names"
        )
    return str(feature_names[idx])


class TreeStore:
    """Immutable topology of a whole ensemble keyed by tree index."""

    def __init__(self, trees: Iterable[Tree]) -> None:
        self._trees: dict[int, Tree] = {}
        for tree in trees:
            if tree.tree_index in self._trees:
                raise MalformedTopology(f"duplicate tree index {tree.tree_index}")
            self._trees[tree.tree_index] = tree
        self._trees = dict(sorted(self._trees.items()))

        for tree in self._trees.values():
            _check_acyclic(tree)
            _check_single_root(tree)

        logger.debug("Built tree store with %d trees", self.num_trees)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        feature_names: Sequence[str] | None = None,
    ) -> "TreeStore":
        internal: dict[int, dict[int, InternalNode]] = {}
        leaves: dict[int, dict[int, LeafNode]] = {}

        for row_num, record in enumerate(records):
            missing = [col for col in TOPOLOGY_COLUMNS if col not in record]
            if missing:
                raise MalformedTopology(f"row {row_num} is missing columns: {missing}")

            tree_index = _as_index(record["tree_index"], "tree_index")
            if tree_index is None:
                raise MalformedTopology(f"row {row_num} has no tree_index")
            split_index = _as_index(record["split_index"], "split_index")
            leaf_index = _as_index(record["leaf_index"], "leaf_index")

            if (split_index is None) == (leaf_index is None):
                raise MalformedTopology(
                    f"row {row_num} of tree {tree_index} must be exactly one of internal node or leaf"
                )

            _check_foreign_columns_null(record, row_num, tree_index, leaf_index is None)

            tree_internal = internal.setdefault(tree_index, {})
            tree_leaves = leaves.setdefault(tree_index, {})

            if split_index is not None:
                if split_index in tree_internal:
                    raise MalformedTopology(
                        f"duplicate split_index {split_index} in tree {tree_index}"
                    )
                tree_internal[split_index] = InternalNode(
                    split_index=split_index,
                    split_feature=_feature_name(record["split_feature"], feature_names),
                    node_parent=_as_index(record["node_parent"], "node_parent"),
                    internal_value=_as_value(record["internal_value"], "internal_value"),
                )
            else:
                if leaf_index in tree_leaves:
                    raise MalformedTopology(
                        f"duplicate leaf_index {leaf_index} in tree {tree_index}"
                    )
                tree_leaves[leaf_index] = LeafNode(
                    leaf_index=leaf_index,
                    leaf_parent=_as_index(record["leaf_parent"], "leaf_parent"),
                    leaf_value=_as_value(record["leaf_value"], "leaf_value"),
                )

        return cls(
            Tree(tree_index=idx, internal_nodes=internal[idx], leaves=leaves[idx])
            for idx in internal
        )

    @classmethod
    def from_columns(
        cls,
        columns: Mapping[str, Sequence[Any]],
        feature_names: Sequence[str] | None = None,
    ) -> "TreeStore":
        missing = [col for col in TOPOLOGY_COLUMNS if col not in columns]
        if missing:
            raise MalformedTopology(f"topology is missing columns: {missing}")

        lengths = {len(columns[col]) for col in TOPOLOGY_COLUMNS}
        if len(lengths) != 1:
            raise MalformedTopology("topology columns must all have the same length")

        n_rows = lengths.pop()
        records = (
            {col: columns[col][i] for col in TOPOLOGY_COLUMNS} for i in range(n_rows)
        )
        return cls.from_records(records, feature_names=feature_names)

    @property
    def num_trees(self) -> int:
        return len(self._trees)

    @property
    def tree_indices(self) -> list[int]:
        return list(self._trees)

    @property
    def max_depth(self) -> int:
        if not self._trees:
            return 0
        return max(tree.max_depth for tree in self._trees.values())

    @property
    def feature_names(self) -> list[str]:
        seen: dict[str, None] = {}
        for tree in self._trees.values():
            for node in tree.internal_nodes.values():
                seen.setdefault(node.split_feature, None)
        return list(seen)

    def select(self, num_iteration: int | None, num_class: int = 1) -> "TreeStore":
        """Trees of the first ``num_iteration`` boosting rounds; all for None or <= 0."""
        if num_iteration is None or num_iteration <= 0:
            return self
        limit = num_iteration * num_class
        return TreeStore(tree for idx, tree in self._trees.items() if idx < limit)

    def tree(self, tree_index: int) -> Tree:
        try:
            return self._trees[tree_index]
        except KeyError:
            raise NodeNotFound(
                f"tree {tree_index} not found in topology", tree_index=tree_index
            ) from None

    def __len__(self) -> int:
        return len(self._trees)

    def __iter__(self):
        return iter(self._trees.values())


def _check_acyclic(tree: Tree) -> None:
    # Dangling parents are reported as NodeNotFound at decomposition time.
    limit = len(tree.internal_nodes)
    for start in tree.internal_nodes.values():
        steps = 0
        parent = start.node_parent
        while parent is not None and parent in tree.internal_nodes:
            steps += 1
            if steps > limit:
                raise MalformedTopology(f"cycle in parent links of tree {tree.tree_index}")
            parent = tree.internal_nodes[parent].node_parent


def _check_single_root(tree: Tree) -> None:
    internal_roots = [n.split_index for n in tree.internal_nodes.values() if n.node_parent is None]
    leaf_roots = [n.leaf_index for n in tree.leaves.values() if n.leaf_parent is None]

    if tree.internal_nodes and leaf_roots:
        raise MalformedTopology(
            f"leaves {leaf_roots} of tree {tree.tree_index} have no parent but the tree has splits"
        )
    if len(internal_roots) + len(leaf_roots) != 1:
        raise MalformedTopology(
            f"tree {tree.tree_index} must have exactly one root, "
            f"found {len(internal_roots) + len(leaf_roots)}"
        )


_INTERNAL_ONLY = ("split_feature", "node_parent", "internal_value")
_LEAF_ONLY = ("leaf_parent", "leaf_value")


def _check_foreign_columns_null(
    record: Mapping[str, Any], row_num: int, tree_index: int, is_internal: bool
) -> None:
    foreign = _LEAF_ONLY if is_internal else _INTERNAL_ONLY
    filled = [col for col in foreign if not _is_null(record[col])]
    if filled:
        kind = "internal" if is_internal else "leaf"
        raise MalformedTopology(
            f"{kind} row {row_num} of tree {tree_index} sets columns {filled}"
        )
