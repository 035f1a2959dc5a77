import json
import math

import pytest

from archgraph.errors import InvalidMutation
from archgraph.graph.graph_schema import Edge, EdgeKind, Node, NodeType, check_attributes
from archgraph.graph.graph_store import GraphStore
from archgraph.graph.graph_query import GraphView
from archgraph.graph.mutations import (
    AddEdge,
    AddNode,
    MutationBatch,
    RemoveNode,
    UpdateNode,
    batch_shape,
    check_operation,
    operation_from_dict,
)
from archgraph.graph.snapshot import (
    from_snapshot,
    read_snapshot,
    to_snapshot,
    write_json,
    write_snapshot,
)


def _chain():
    graph = GraphStore()
    sys_ = Node.create("SYS", "Shop.SY.001")
    uc = Node.create("UC", "Checkout.UC.001")
    fn = Node.create("FUNC", "Charge.FN.001")
    for node in (sys_, uc, fn):
        graph.add_node(node)
    graph.add_edge(Edge.create(sys_.id, uc.id, "compose"))
    graph.add_edge(Edge.create(uc.id, fn.id, "compose"))
    graph.add_edge(Edge.create(fn.id, uc.id, "relation"))
    return graph, sys_, uc, fn


def test_graph_store_accessors_and_edges_between():
    graph, sys_, uc, fn = _chain()

    assert graph.node_count() == 3
    assert graph.edge_count() == 3
    assert graph.find_node("Checkout.UC.001").id == uc.id
    assert [n.id for n in graph.get_nodes(NodeType.FUNCTION)] == [fn.id]

    # compose and relation between the same pair are distinct edges
    assert graph.has_edge(uc.id, fn.id, EdgeKind.COMPOSE)
    assert graph.has_edge(fn.id, uc.id, EdgeKind.RELATION)
    assert not graph.has_edge(fn.id, uc.id, EdgeKind.COMPOSE)
    assert graph.get_edge(uc.id, fn.id, "compose").key == (uc.id, fn.id, EdgeKind.COMPOSE)

    between = graph.get_edges_between({uc.id, fn.id})
    assert {e.kind for e in between} == {EdgeKind.COMPOSE, EdgeKind.RELATION}


def test_graph_store_rejects_duplicates_and_absent_endpoints():
    graph, sys_, uc, _ = _chain()

    with pytest.raises(ValueError):
        graph.add_node(Node.create("FUNC", "Charge.FN.001"))

    with pytest.raises(ValueError):
        graph.add_edge(Edge.create(sys_.id, uc.id, "compose"))

    with pytest.raises(ValueError):
        graph.add_edge(Edge.create(sys_.id, "missing", "io"))


def test_clone_shares_no_state():
    graph, _, uc, _ = _chain()
    copy = graph.clone()
    assert copy == graph

    copy.add_node(Node.create("REQ", "Fast.RQ.001"))
    assert copy != graph
    assert graph.find_node("Fast.RQ.001") is None

    copy.get_node(uc.id).attributes["name"] = "changed"
    assert "name" not in graph.get_node(uc.id).attributes


def test_attributes_must_be_scalars():
    with pytest.raises(ValueError):
        Node.create("FUNC", "Bad.FN.001", {"nested": {"a": 1}})


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
def test_attributes_must_be_finite(value):
    with pytest.raises(ValueError):
        Node.create("FUNC", "Bad.FN.001", {"weight": value})

    with pytest.raises(ValueError):
        Edge.create("a", "b", "io", {"weight": value})


def test_attributes_must_be_a_mapping():
    with pytest.raises(ValueError):
        check_attributes([("name", "x")])


def test_view_hierarchy_and_cycles():
    graph, sys_, uc, fn = _chain()
    view = GraphView(graph)

    assert view.node("Checkout.UC.001").id == uc.id
    assert view.node("Missing.UC.404") is None
    assert [n.id for n in view.roots()] == [sys_.id]
    assert [n.id for n in view.children(uc.id)] == [fn.id]
    assert [n.id for n in view.parents(fn.id)] == [uc.id]

    # relation edges never count as hierarchy, so no cycle yet
    assert view.hierarchy_cycles() == []

    graph.add_edge(Edge.create(fn.id, sys_.id, "compose"))
    cycles = GraphView(graph).hierarchy_cycles()
    assert len(cycles) == 1
    assert set(cycles[0]) == {sys_.id, uc.id, fn.id}


def test_k_hop_subgraph_respects_kinds():
    graph, sys_, uc, fn = _chain()
    view = GraphView(graph)

    one_hop = view.k_hop_subgraph(start=sys_.id, k=1)
    assert one_hop.nodes == {sys_.id, uc.id}

    two_hops = view.k_hop_subgraph(start=sys_.id, k=2, kinds={EdgeKind.COMPOSE})
    assert two_hops.nodes == {sys_.id, uc.id, fn.id}
    assert all(e.kind == EdgeKind.COMPOSE for e in two_hops.edges)


def test_snapshot_file_round_trip(tmp_path):
    graph, *_ = _chain()

    path = write_snapshot(tmp_path / "model.json", graph)
    restored = read_snapshot(path)

    assert restored == graph
    assert to_snapshot(restored)["edges"][0].keys() == {"source", "target", "kind", "attributes"}


def test_write_json_replaces_file_without_leaving_temp(tmp_path):
    path = tmp_path / "nested" / "episodes.json"

    write_json(path, {"episodes": [1]})
    write_json(path, {"episodes": [1, 2]})

    assert json.loads(path.read_text(encoding="utf-8")) == {"episodes": [1, 2]}
    assert [p.name for p in path.parent.iterdir()] == ["episodes.json"]


def test_snapshot_rejects_dangling_edges():
    graph, *_ = _chain()
    data = to_snapshot(graph)
    data["edges"].append({"source": "nope", "target": data["nodes"][0]["id"], "kind": "io"})

    with pytest.raises(ValueError):
        from_snapshot(data)


def test_batch_shape_ignores_names():
    first = MutationBatch(
        [
            AddNode("FUNC", "A.FN.001"),
            AddNode("FUNC", "B.FN.001"),
            AddEdge("A.FN.001", "B.FN.001", "io"),
        ]
    )
    second = MutationBatch(
        [
            AddNode("FUNC", "X.FN.009"),
            AddEdge("X.FN.009", "Y.FN.002", "io"),
            AddNode("FUNC", "Y.FN.002"),
        ]
    )
    assert first.shape() == second.shape() == "add_edge:io x1 | add_node:FUNC x2"
    assert batch_shape([RemoveNode("A.FN.001")]) == "remove_node x1"


def test_operation_from_dict_rejects_unknown_ops():
    op = operation_from_dict({"op": "add_node", "type": "REQ", "semantic_id": "R.RQ.001"})
    assert isinstance(op, AddNode)

    with pytest.raises(ValueError):
        operation_from_dict({"op": "explode"})

    with pytest.raises(ValueError):
        operation_from_dict({"op": "remove_node", "semantic_id": "x", "extra": 1})


@pytest.mark.parametrize(
    "raw",
    [
        {"op": "add_node", "type": "FUNC", "semantic_id": 123},
        {"op": "add_node", "type": 7, "semantic_id": "A.FN.001"},
        {"op": "add_edge", "source": "A.FN.001", "target": ["B.FN.001"], "kind": "io"},
        {"op": "update_node", "semantic_id": "A.FN.001", "new_semantic_id": 5},
        {"op": "update_node", "semantic_id": "A.FN.001", "remove_attributes": "name"},
        {"op": "update_edge", "source": "A", "target": "B", "kind": "io", "remove_attributes": [1]},
        {"op": "update_edge", "source": "A", "target": "B", "kind": "io", "attributes": "x=1"},
        "add_node",
    ],
)
def test_operation_from_dict_rejects_mistyped_fields(raw):
    with pytest.raises(ValueError):
        operation_from_dict(raw)


def test_from_dicts_reports_index_of_mistyped_operation():
    with pytest.raises(InvalidMutation) as info:
        MutationBatch.from_dicts(
            [
                {"op": "add_node", "type": "FUNC", "semantic_id": "A.FN.001"},
                {"op": "add_node", "type": "FUNC", "semantic_id": 123},
            ]
        )

    assert info.value.index == 1


def test_check_operation_accepts_enums_and_optional_rename():
    op = UpdateNode("A.FN.001", {"name": "A"}, remove_attributes=("descr",))
    assert check_operation(op) is op
    assert check_operation(AddEdge("A.FN.001", "B.FN.001", EdgeKind.IO)).kind is EdgeKind.IO
    assert check_operation(AddNode(NodeType.FUNCTION, "A.FN.001")).type is NodeType.FUNCTION
