import numpy as np
import pytest

from tree_table import TOPOLOGY_COLUMNS, TreeStore


def internal_row(tree_index, split_index, feature, parent, value):
    return {
        "tree_index": tree_index,
        "split_index": split_index,
        "split_feature": feature,
        "node_parent": parent,
        "internal_value": value,
        "leaf_index": None,
        "leaf_parent": None,
        "leaf_value": None,
    }


def leaf_row(tree_index, leaf_index, parent, value):
    return {
        "tree_index": tree_index,
        "split_index": None,
        "split_feature": None,
        "node_parent": None,
        "internal_value": None,
        "leaf_index": leaf_index,
        "leaf_parent": parent,
        "leaf_value": value,
    }


def random_tree_rows(rng, tree_index, max_depth, features):
    """Random binary tree; returns (rows, leaf ids)."""
    rows = []
    leaf_ids = []
    counters = {"split": 0, "leaf": 0}

    def grow(parent, depth):
        if depth >= max_depth or (depth > 0 and rng.random() < 0.3):
            leaf_id = counters["leaf"]
            counters["leaf"] += 1
            rows.append(leaf_row(tree_index, leaf_id, parent, float(rng.normal())))
            leaf_ids.append(leaf_id)
            return
        split_id = counters["split"]
        counters["split"] += 1
        feature = features[int(rng.integers(len(features)))]
        rows.append(internal_row(tree_index, split_id, feature, parent, float(rng.normal())))
        grow(split_id, depth + 1)
        grow(split_id, depth + 1)

    grow(None, 0)
    return rows, leaf_ids


@pytest.fixture
def scenario_rows():
    # Tree 0: root(0.10) -f1-> node(0.30) -f1-> leaf(0.50). Tree 1: single leaf.
    return [
        internal_row(0, 0, "f1", None, 0.10),
        internal_row(0, 1, "f1", 0, 0.30),
        leaf_row(0, 0, 1, 0.50),
        leaf_row(0, 1, 1, 0.45),
        leaf_row(0, 2, 0, -0.20),
        leaf_row(1, 0, None, 0.20),
    ]


@pytest.fixture
def scenario_store(scenario_rows):
    return TreeStore.from_records(scenario_rows)


@pytest.fixture
def random_ensemble():
    def build(n_trees, max_depth=4, features=("a", "b", "c", "d"), seed=0):
        rng = np.random.default_rng(seed)
        rows = []
        leaf_ids = []
        for tree_index in range(n_trees):
            tree_rows, tree_leaves = random_tree_rows(rng, tree_index, max_depth, list(features))
            rows.extend(tree_rows)
            leaf_ids.append(tree_leaves)
        columns = {col: [row[col] for row in rows] for col in TOPOLOGY_COLUMNS}
        return TreeStore.from_columns(columns), leaf_ids, rng

    return build
