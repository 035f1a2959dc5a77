from archgraph.errors import PlanningError
from archgraph.graph.mutations import AddEdge
from archgraph.planning.planner import Plan

from conftest import sample_batch


def _apply_sample(client, origin=None):
    return client.post(
        "/graph/apply",
        json={"operations": sample_batch().to_dicts(), "origin": origin},
    )


# ---------------------------------------------------------------------
# Graph endpoints
# ---------------------------------------------------------------------


def test_graph_apply_commit_and_diff(client):
    response = _apply_sample(client)
    assert response.status_code == 200
    body = response.json()
    assert body["version"] == 1
    assert body["sequence"] == 1
    assert {n["semantic_id"] for n in body["diff"]["added_nodes"]} == {
        "OrderSystem.SY.001",
        "PlaceOrder.UC.001",
        "ValidateOrder.FN.001",
    }
    assert {e["source"] for e in body["diff"]["added_edges"]} == {
        "OrderSystem.SY.001",
        "PlaceOrder.UC.001",
    }

    assert client.post("/graph/commit").json() == {"version": 2}

    diff = client.get("/graph/diff").json()
    assert diff["version"] == 2
    assert diff["diff"]["summary"]["total"] == 0
    assert diff["diff"]["added_nodes"] == []

    assert client.get("/graph/stats").json() == {
        "nodes": 3,
        "edges": 2,
        "version": 2,
        "has_baseline": True,
    }


def test_graph_diff_and_restore_need_a_baseline(client):
    _apply_sample(client)

    diff = client.get("/graph/diff")
    assert diff.status_code == 409
    assert diff.json()["detail"]["error"] == "no_baseline"

    assert client.post("/graph/restore").status_code == 409


def test_graph_apply_rejects_batch_with_index(client, store):
    _apply_sample(client)
    client.post("/graph/commit")

    response = client.post(
        "/graph/apply",
        json={
            "operations": [
                {"op": "add_node", "type": "REQ", "semantic_id": "Totals.RQ.001"},
                {"op": "add_edge", "source": "Ghost.FN.404", "target": "Totals.RQ.001", "kind": "satisfy"},
            ]
        },
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["error"] == "invalid_mutation"
    assert detail["index"] == 1
    assert store.find_node("Totals.RQ.001") is None


def test_graph_apply_rejects_unknown_operation(client):
    response = client.post("/graph/apply", json={"operations": [{"op": "explode"}]})

    assert response.status_code == 422
    assert response.json()["detail"]["index"] == 0


def test_graph_apply_rejects_mistyped_fields(client, store):
    for operations in (
        [{"op": "add_node", "type": "FUNC", "semantic_id": 123}],
        [{"op": "add_node", "type": "FUNC", "semantic_id": "Pay.FN.001", "attributes": [1, 2]}],
        [
            {"op": "add_node", "type": "FUNC", "semantic_id": "Pay.FN.001"},
            {"op": "update_node", "semantic_id": "Pay.FN.001", "remove_attributes": "name"},
        ],
    ):
        response = client.post("/graph/apply", json={"operations": operations})

        assert response.status_code == 422
        assert response.json()["detail"]["error"] == "invalid_mutation"
        assert response.json()["detail"]["index"] == len(operations) - 1

    assert store.version == 0
    assert store.find_node("Pay.FN.001") is None


def test_graph_restore_discards_uncommitted_changes(client, store):
    _apply_sample(client)
    client.post("/graph/commit")
    client.post(
        "/graph/apply",
        json={"operations": [{"op": "remove_edge", "source": "PlaceOrder.UC.001", "target": "ValidateOrder.FN.001", "kind": "compose"}]},
    )

    assert client.post("/graph/restore", json={"origin": "ui"}).json() == {"version": 4}
    assert store.working_copy().edge_count() == 2


def test_graph_export_and_load(client):
    _apply_sample(client)
    exported = client.get("/graph/export").json()
    assert exported["version"] == 1
    assert len(exported["nodes"]) == 3

    snapshot = {"nodes": exported["nodes"], "edges": exported["edges"]}
    response = client.post("/graph/load", json=snapshot)
    assert response.json() == {"version": 2}
    assert client.get("/graph/stats").json()["has_baseline"] is True

    bad = {"nodes": [], "edges": [{"source": "a", "target": "b", "kind": "io", "attributes": {}}]}
    assert client.post("/graph/load", json=bad).status_code == 422


def test_graph_validate_reports_rule_violations(client):
    _apply_sample(client)

    body = client.get("/graph/validate").json()

    assert body["hard_failures"] == 0
    assert body["warnings"] == 2
    assert body["score"] == 0.9
    assert {v["rule_id"] for v in body["violations"]} == {
        "function_requirements",
        "function_allocation",
    }


# ---------------------------------------------------------------------
# Query endpoints
# ---------------------------------------------------------------------


def test_query_applies_planned_mutations_and_remembers(client, planner, episodic):
    planner.plans["model the order system"] = Plan(
        reply="Added the order system.", operations=sample_batch().operations
    )

    response = client.post("/query/", json={"request": "model the order system", "origin": "ui"})

    assert response.status_code == 200
    body = response.json()
    assert body["cached"] is False
    assert body["version"] == 1
    assert len(body["operations"]) == 5
    assert len(body["diff"]["added_nodes"]) == 3
    assert body["validation"]["score"] == 0.9

    history = client.get("/query/history").json()
    assert len(history) == 1
    assert history[0]["success_score"] == 0.9
    assert history[0]["outcome"]["shape"] == "add_edge:compose x2 | add_node:FUNC x1 | add_node:SYS x1 | add_node:UC x1"
    assert "function_requirements" in history[0]["critique"]

    patterns = client.get("/query/patterns", params={"request": "model the billing system"}).json()
    assert len(patterns) == 1
    assert patterns[0]["success_rate"] == 0.9
    assert len(episodic.patterns()) == 1


def test_reply_only_answers_are_cached_per_version(client, planner):
    first = client.post("/query/", json={"request": "how many functions are there"}).json()
    second = client.post("/query/", json={"request": "How many functions are there"}).json()

    assert first["cached"] is False
    assert first["reply"] == "noted: how many functions are there"
    assert second["cached"] is True
    assert second["similarity"] == 1.0
    assert len(planner.calls) == 1

    _apply_sample(client)
    third = client.post("/query/", json={"request": "how many functions are there"}).json()
    assert third["cached"] is False
    assert len(planner.calls) == 2

    phrasing = client.post(
        "/query/",
        json={"request": "how many functions are there", "version_sensitive": False},
    ).json()
    assert phrasing["cached"] is True


def test_rejected_plan_is_remembered_with_zero_score(client, planner, episodic, store):
    planner.plans["link the ghost"] = Plan(
        reply="Linking.", operations=[AddEdge("Ghost.FN.001", "Nowhere.RQ.001", "satisfy")]
    )

    response = client.post("/query/", json={"request": "link the ghost"})

    assert response.status_code == 422
    assert response.json()["detail"]["index"] == 0
    assert store.version == 0

    [episode] = episodic.episodes()
    assert episode.success_score == 0.0
    assert episode.outcome["rejected"] is True
    assert "operation #0" in episode.critique

    client.post("/query/", json={"request": "link the ghost"})
    assert "Learn from previous issues:" in planner.contexts[-1]


def test_planner_failure_maps_to_bad_gateway(client, planner, monkeypatch):
    def _broken(request, view, *, context=""):
        raise PlanningError("unparseable operations in planner output")

    monkeypatch.setattr(planner, "plan", _broken)

    response = client.post("/query/", json={"request": "add a module"})

    assert response.status_code == 502
    assert response.json()["detail"]["error"] == "planning_failed"


# ---------------------------------------------------------------------
# Event stream
# ---------------------------------------------------------------------


def test_event_stream_starts_with_snapshot_then_streams_others_changes(client):
    _apply_sample(client)

    with client.websocket_connect("/events/viewer") as ws:
        first = ws.receive_json()
        assert first["type"] == "snapshot"
        assert first["version"] == 1
        assert first["resync"] is False
        assert len(first["snapshot"]["nodes"]) == 3

        # The viewer's own change is not echoed back.
        client.post(
            "/graph/apply",
            json={"operations": [{"op": "add_node", "type": "MOD", "semantic_id": "Orders.MD.001"}], "origin": "viewer"},
        )
        client.post(
            "/graph/apply",
            json={"operations": [{"op": "add_node", "type": "MOD", "semantic_id": "Billing.MD.001"}], "origin": "editor"},
        )

        event = ws.receive_json()
        assert event["type"] == "event"
        assert event["kind"] == "mutation"
        assert event["version"] == 3
        assert event["origin"] == "editor"
        assert event["payload"]["diff"]["added_nodes"][0]["semantic_id"] == "Billing.MD.001"


def test_reconnect_with_same_observer_id_takes_over_the_feed(client):
    _apply_sample(client)

    with client.websocket_connect("/events/viewer") as old:
        assert old.receive_json()["type"] == "snapshot"

        with client.websocket_connect("/events/viewer") as new:
            assert new.receive_json()["type"] == "snapshot"
            assert old.receive_json() == {"type": "superseded", "observer_id": "viewer"}

            client.post(
                "/graph/apply",
                json={"operations": [{"op": "add_node", "type": "MOD", "semantic_id": "Billing.MD.001"}], "origin": "editor"},
            )

            event = new.receive_json()
            assert event["type"] == "event"
            assert event["payload"]["diff"]["added_nodes"][0]["semantic_id"] == "Billing.MD.001"
