from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from interpret_errors import ShapeMismatch
from path_decomposer import PathDecomposer
from tree_table import TreeStore

FEATURE_COLUMN = "Feature"
CONTRIBUTION_COLUMN = "Contribution"


@dataclass(frozen=True, eq=False)
class ContributionTable:
    """Per-feature contributions of one row, one column per output.

    ``columns`` starts with the feature key column, followed by one label per
    column of ``values``.
    """

    features: tuple[str, ...]
    values: np.ndarray
    columns: tuple[str, ...] = (FEATURE_COLUMN, CONTRIBUTION_COLUMN)

    def __post_init__(self) -> None:
        if self.values.ndim != 2:
            raise ValueError("values must be a 2D array")
        if self.values.shape[0] != len(self.features):
            raise ValueError("values must have one row per feature")
        if len(self.columns) != self.values.shape[1] + 1:
            raise ValueError("columns must label the feature key and every value column")

    def __len__(self) -> int:
        return len(self.features)

    @property
    def num_outputs(self) -> int:
        return self.values.shape[1]

    def column(self, name: str) -> np.ndarray:
        if name == FEATURE_COLUMN or name not in self.columns:
            raise KeyError(name)
        return self.values[:, self.columns.index(name) - 1]

    def items(self) -> list[tuple[str, float]]:
        return [(f, float(v)) for f, v in zip(self.features, self.values[:, 0])]

    def to_dict(self) -> dict[str, float] | dict[str, dict[str, float]]:
        if self.num_outputs == 1:
            return dict(self.items())
        labels = self.columns[1:]
        return {
            feature: {label: float(v) for label, v in zip(labels, row)}
            for feature, row in zip(self.features, self.values)
        }

    def to_records(self) -> list[dict[str, str | float]]:
        records = []
        for feature, row in zip(self.features, self.values):
            record: dict[str, str | float] = {FEATURE_COLUMN: feature}
            record.update({label: float(v) for label, v in zip(self.columns[1:], row)})
            records.append(record)
        return records

    def total(self) -> np.ndarray:
        return self.values.sum(axis=0)


def rank_by_magnitude(
    features: Sequence[str],
    values: np.ndarray,
    columns: tuple[str, ...],
) -> ContributionTable:
    """Sort rows by descending |first column|; ties keep their input order."""
    values = np.asarray(values, dtype=np.float64).reshape(len(features), len(columns) - 1)
    order = np.argsort(-np.abs(values[:, 0]), kind="stable")
    return ContributionTable(
        features=tuple(features[i] for i in order),
        values=values[order],
        columns=columns,
    )


class TreeAggregator:
    """Sums path contributions of one row/class over its trees."""

    def __init__(self, store: TreeStore, decomposer: PathDecomposer | None = None) -> None:
        self.store = store
        self.decomposer = decomposer or PathDecomposer()

    def aggregate(
        self,
        tree_indices: Sequence[int],
        leaf_indices: Sequence[int],
    ) -> ContributionTable:
        if len(tree_indices) != len(leaf_indices):
            raise ShapeMismatch(
                f"got {len(tree_indices)} tree indices but {len(leaf_indices)} leaf indices"
            )

        # Insertion order is first-seen order in ascending tree position,
        # which is also the tie-break of the ranking.
        totals: dict[str, float] = {}
        for tree_index, leaf_index in zip(tree_indices, leaf_indices):
            tree = self.store.tree(int(tree_index))
            features, contributions = self.decomposer.decompose(tree, int(leaf_index))
            for feature, contribution in zip(features, contributions):
                totals[feature] = totals.get(feature, 0.0) + float(contribution)

        return rank_by_magnitude(
            list(totals),
            np.fromiter(totals.values(), dtype=np.float64, count=len(totals)),
            (FEATURE_COLUMN, CONTRIBUTION_COLUMN),
        )
