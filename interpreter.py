from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Any, Protocol, Sequence

import numpy as np

from class_aggregator import merge
from interpret_errors import IndexOutOfRange, ShapeMismatch
from interpret_params import InterpretParams
from path_decomposer import PathDecomposer
from tree_aggregator import ContributionTable, TreeAggregator
from tree_table import TreeStore

logger = logging.getLogger(__name__)


class LeafPredictor(Protocol):
    """Prediction engine able to report the leaf each row reaches per tree.

    ``predict_leaf`` returns an ``(n_rows, trees_per_class * num_class)``
    array ordered iteration-major: column ``t * num_class + c`` is the
    ``t``-th tree of class ``c``.
    """

    num_class: int

    def predict_leaf(self, data: Any, num_iteration: int | None = None) -> np.ndarray:
        ...


class InterpretableModel(LeafPredictor, Protocol):
    def tree_table(self, num_iteration: int | None = None) -> TreeStore:
        """Topology of the trees ``predict_leaf`` uses for the same limit."""
        ...


def _num_rows(data: Any) -> int:
    shape = getattr(data, "shape", None)
    if shape is not None:
        return int(shape[0])
    return len(data)


def _take_rows(data: Any, rows: np.ndarray) -> Any:
    if hasattr(data, "iloc"):
        return data.iloc[rows]
    if hasattr(data, "shape"):
        return data[rows]
    return np.asarray(data)[rows]


class RowBatchInterpreter:
    """Explains raw scores of selected rows as per-feature contributions."""

    def __init__(
        self,
        store: TreeStore,
        predictor: LeafPredictor,
        params: InterpretParams | None = None,
    ) -> None:
        self.store = store
        self.predictor = predictor
        self.params = params or InterpretParams()

        self.num_class = int(predictor.num_class)
        if self.num_class < 1:
            raise ValueError("num_class must be >= 1")

        self.aggregator = TreeAggregator(
            store, PathDecomposer(max_depth=self.params.max_depth)
        )

    def trees_per_class(self) -> int:
        if self.store.num_trees % self.num_class != 0:
            raise ShapeMismatch(
                f"{self.store.num_trees} trees cannot be split evenly "
                f"across {self.num_class} classes"
            )
        n_trees = self.store.num_trees // self.num_class
        if self.params.num_iteration is not None:
            n_trees = min(n_trees, self.params.num_iteration)
        return n_trees

    def _check_rows(self, data: Any, row_indices: Sequence[int]) -> np.ndarray:
        rows = np.asarray(row_indices, dtype=np.int64).reshape(-1)
        n_rows = _num_rows(data)
        bad = rows[(rows < 0) | (rows >= n_rows)]
        if bad.size > 0:
            raise IndexOutOfRange(
                f"row indices {bad.tolist()} out of range for {n_rows} input rows"
            )
        return rows

    def leaf_indices(self, data: Any, row_indices: Sequence[int]) -> np.ndarray:
        """Leaf matrix of shape ``(n_rows, trees_per_class, num_class)``."""
        rows = self._check_rows(data, row_indices)
        n_trees = self.trees_per_class()

        raw = np.asarray(
            self.predictor.predict_leaf(
                _take_rows(data, rows), num_iteration=self.params.num_iteration
            )
        )
        expected = (rows.size, n_trees * self.num_class)
        if raw.shape != expected:
            raise ShapeMismatch(
                f"leaf-index output has shape {raw.shape}, expected {expected}"
            )
        if raw.size and not np.all(np.equal(np.mod(raw, 1), 0)):
            raise ValueError("leaf indices must be integral")

        return raw.astype(np.int64).reshape(rows.size, n_trees, self.num_class)

    def interpret_row(self, leaf_mat: np.ndarray) -> ContributionTable:
        n_trees = leaf_mat.shape[0]
        tree_mat = np.arange(n_trees * self.num_class).reshape(n_trees, self.num_class)

        class_tables = [
            self.aggregator.aggregate(tree_mat[:, c], leaf_mat[:, c])
            for c in range(self.num_class)
        ]
        return merge(class_tables)

    def interpret(self, data: Any, row_indices: Sequence[int]) -> list[ContributionTable]:
        leaf_mats = self.leaf_indices(data, row_indices)
        logger.debug(
            "Interpreting %d rows over %d trees per class and %d classes",
            leaf_mats.shape[0],
            leaf_mats.shape[1],
            self.num_class,
        )

        if self.params.n_jobs > 1 and leaf_mats.shape[0] > 1:
            with ThreadPoolExecutor(max_workers=self.params.n_jobs) as pool:
                return list(pool.map(self.interpret_row, leaf_mats))
        return [self.interpret_row(leaf_mat) for leaf_mat in leaf_mats]


def interpret(
    model: InterpretableModel | LeafPredictor,
    data: Any,
    row_indices: Sequence[int],
    num_iteration: int | None = None,
    store: TreeStore | None = None,
    params: InterpretParams | None = None,
) -> list[ContributionTable]:
    """Compute feature contributions of the raw score for ``row_indices``.

    Returns one table per requested row, in request order. Single-output
    models yield a ``Contribution`` column; multi-class models one
    ``Class <c>`` column per class. ``num_iteration`` of ``None`` or ``<= 0``
    uses every iteration the model provides. ``store`` defaults to
    ``model.tree_table(num_iteration)`` so topology and leaf predictions cover
    the same iterations.
    """
    if params is None:
        params = InterpretParams(num_iteration=num_iteration)
    elif num_iteration is not None:
        raise ValueError("pass num_iteration either directly or through params, not both")

    if store is None:
        store = model.tree_table(params.num_iteration)

    return RowBatchInterpreter(store, model, params).interpret(data, row_indices)
