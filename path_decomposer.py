from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from interpret_errors import MalformedTopology
from tree_table import Tree


@dataclass(frozen=True, eq=False)
class DecisionPath:
    """Root-to-leaf walk of one row through one tree.

    ``values`` runs from the root's internal value to the leaf value;
    ``features[i]`` is the split taken between ``values[i]`` and
    ``values[i + 1]``.
    """

    features: tuple[str, ...]
    values: np.ndarray

    @property
    def contributions(self) -> np.ndarray:
        return np.diff(self.values)

    @property
    def depth(self) -> int:
        return len(self.features)


class PathDecomposer:
    def __init__(self, max_depth: int | None = None) -> None:
        self.max_depth = max_depth

    def _step_limit(self, tree: Tree) -> int:
        if self.max_depth is not None:
            return self.max_depth
        return len(tree.internal_nodes)

    def decision_path(self, tree: Tree, leaf_index: int) -> DecisionPath:
        leaf = tree.leaf(leaf_index)
        limit = self._step_limit(tree)

        features: list[str] = []
        values: list[float] = [leaf.leaf_value]

        parent = leaf.leaf_parent
        while parent is not None:
            if len(features) >= limit:
                raise MalformedTopology(
                    f"path from leaf {leaf_index} in tree {tree.tree_index} "
                    f"exceeds depth limit {limit}"
                )
            node = tree.internal_node(parent)
            features.append(node.split_feature)
            values.append(node.internal_value)
            parent = node.node_parent

        # Collected leaf-first; paths are read root-first.
        features.reverse()
        values.reverse()
        return DecisionPath(
            features=tuple(features),
            values=np.asarray(values, dtype=np.float64),
        )

    def decompose(self, tree: Tree, leaf_index: int) -> tuple[list[str], np.ndarray]:
        path = self.decision_path(tree, leaf_index)
        return list(path.features), path.contributions


def decompose(tree: Tree, leaf_index: int) -> tuple[list[str], np.ndarray]:
    return PathDecomposer().decompose(tree, leaf_index)
