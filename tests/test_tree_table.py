import math

import pytest

from conftest import internal_row, leaf_row
from interpret_errors import MalformedTopology, NodeNotFound
from tree_table import TOPOLOGY_COLUMNS, InternalNode, LeafNode, TreeStore


def test_store_groups_rows_by_tree(scenario_store):
    assert scenario_store.num_trees == 2
    assert scenario_store.tree_indices == [0, 1]

    tree0 = scenario_store.tree(0)
    assert isinstance(tree0.root, InternalNode)
    assert tree0.root.internal_value == pytest.approx(0.10)
    assert tree0.num_leaves == 3
    assert tree0.max_depth == 2

    tree1 = scenario_store.tree(1)
    assert isinstance(tree1.root, LeafNode)
    assert tree1.max_depth == 0
    assert scenario_store.max_depth == 2
    assert scenario_store.feature_names == ["f1"]


def test_from_columns_accepts_nan_as_null(scenario_rows):
    nan = float("nan")
    columns = {
        col: [nan if row[col] is None else row[col] for row in scenario_rows]
        for col in TOPOLOGY_COLUMNS
    }
    # Exporters often emit integer id columns as floats when they contain nulls.
    columns["split_index"] = [nan if math.isnan(v) else float(v) for v in columns["split_index"]]

    store = TreeStore.from_columns(columns)

    assert store.tree(0).internal_node(1).node_parent == 0
    assert store.tree(1).leaf(0).leaf_parent is None


def test_integer_features_are_named():
    rows = [
        internal_row(0, 0, 2, None, 0.0),
        leaf_row(0, 0, 0, 1.0),
        leaf_row(0, 1, 0, -1.0),
    ]

    assert TreeStore.from_records(rows).feature_names == ["Column_2"]
    named = TreeStore.from_records(rows, feature_names=["x", "y", "z"])
    assert named.feature_names == ["z"]

    with pytest.raises(MalformedTopology):
        TreeStore.from_records(rows, feature_names=["x"])


def test_missing_column_rejected(scenario_rows):
    columns = {col: [row[col] for row in scenario_rows] for col in TOPOLOGY_COLUMNS}
    del columns["leaf_parent"]

    with pytest.raises(MalformedTopology, match="leaf_parent"):
        TreeStore.from_columns(columns)


def test_row_must_be_exactly_one_variant():
    both = internal_row(0, 0, "f1", None, 0.0)
    both["leaf_index"] = 0
    with pytest.raises(MalformedTopology):
        TreeStore.from_records([both])

    neither = leaf_row(0, 0, None, 0.0)
    neither["leaf_index"] = None
    with pytest.raises(MalformedTopology):
        TreeStore.from_records([neither])


def test_duplicate_ids_rejected():
    with pytest.raises(MalformedTopology, match="duplicate leaf_index"):
        TreeStore.from_records([leaf_row(0, 0, None, 0.0), leaf_row(0, 0, None, 1.0)])

    with pytest.raises(MalformedTopology, match="duplicate split_index"):
        TreeStore.from_records(
            [internal_row(0, 0, "a", None, 0.0), internal_row(0, 0, "b", None, 0.0)]
        )


def test_parent_cycle_rejected():
    rows = [
        internal_row(0, 0, "a", 1, 0.0),
        internal_row(0, 1, "b", 0, 0.0),
        leaf_row(0, 0, 1, 1.0),
    ]
    with pytest.raises(MalformedTopology, match="cycle"):
        TreeStore.from_records(rows)


def test_unknown_tree_raises_node_not_found(scenario_store):
    with pytest.raises(NodeNotFound) as excinfo:
        scenario_store.tree(7)
    assert excinfo.value.tree_index == 7


def test_parentless_leaf_in_split_tree_rejected():
    rows = [
        internal_row(0, 0, "a", None, 0.1),
        leaf_row(0, 0, 0, 0.5),
        leaf_row(0, 1, None, 0.9),
    ]
    with pytest.raises(MalformedTopology, match="no parent"):
        TreeStore.from_records(rows)


def test_tree_needs_exactly_one_root():
    two_roots = [
        internal_row(0, 0, "a", None, 0.1),
        internal_row(0, 1, "b", None, 0.2),
        leaf_row(0, 0, 0, 0.5),
        leaf_row(0, 1, 1, 0.7),
    ]
    with pytest.raises(MalformedTopology, match="exactly one root"):
        TreeStore.from_records(two_roots)

    two_leaf_roots = [leaf_row(0, 0, None, 0.5), leaf_row(0, 1, None, 0.7)]
    with pytest.raises(MalformedTopology, match="exactly one root"):
        TreeStore.from_records(two_leaf_roots)


def test_cells_of_the_other_variant_must_be_null():
    leaf = leaf_row(0, 0, None, 0.5)
    leaf["internal_value"] = 0.3
    with pytest.raises(MalformedTopology, match="internal_value"):
        TreeStore.from_records([leaf])

    internal = internal_row(0, 0, "a", None, 0.1)
    internal["leaf_value"] = 0.5
    with pytest.raises(MalformedTopology, match="leaf_value"):
        TreeStore.from_records([internal, leaf_row(0, 0, 0, 0.2)])


def test_non_numeric_cells_rejected():
    bad_id = leaf_row(0, "first", None, 0.5)
    with pytest.raises(MalformedTopology, match="leaf_index"):
        TreeStore.from_records([bad_id])

    bad_value = leaf_row(0, 0, None, object())
    with pytest.raises(MalformedTopology, match="leaf_value"):
        TreeStore.from_records([bad_value])


def test_pandas_missing_values_are_null(scenario_rows):
    pd = pytest.importorskip("pandas")
    rows = [{k: pd.NA if v is None else v for k, v in row.items()} for row in scenario_rows]

    store = TreeStore.from_records(rows)

    assert store.tree(0).root.node_parent is None
    assert store.tree(1).leaf(0).leaf_parent is None


def test_select_keeps_leading_iterations(random_ensemble):
    store, _, _ = random_ensemble(n_trees=6, max_depth=2)

    assert store.select(2, num_class=2).tree_indices == [0, 1, 2, 3]
    assert store.select(1).tree_indices == [0]
    assert store.select(None) is store
    assert store.select(0) is store
