from __future__ import annotations

from typing import Sequence

import numpy as np

from tree_aggregator import FEATURE_COLUMN, ContributionTable, rank_by_magnitude


def class_label(class_idx: int) -> str:
    return f"Class {class_idx}"


def merge(tables: Sequence[ContributionTable]) -> ContributionTable:
    """Outer-join per-class tables on feature into one wide table.

    A single table is returned unchanged. Otherwise features keep their
    first appearance order across classes 0..K-1, absent cells are 0.0 and
    rows are ranked by the first class column.
    """
    if not tables:
        raise ValueError("at least one class table is required")
    if len(tables) == 1:
        return tables[0]

    features: dict[str, int] = {}
    for table in tables:
        for feature in table.features:
            features.setdefault(feature, len(features))

    merged = np.zeros((len(features), len(tables)), dtype=np.float64)
    for class_idx, table in enumerate(tables):
        if table.num_outputs != 1:
            raise ValueError("per-class tables must have exactly one contribution column")
        for feature, value in zip(table.features, table.values[:, 0]):
            merged[features[feature], class_idx] = value

    columns = (FEATURE_COLUMN,) + tuple(class_label(c) for c in range(len(tables)))
    return rank_by_magnitude(list(features), merged, columns)
