from backend.app.loaders.snapshot_loader import (
    load_episodes,
    load_graph_from_snapshot,
    save_episodes,
    save_graph_snapshot,
)

from archgraph.graph.mutations import AddNode
from archgraph.memory.episodic import EpisodicStore
from archgraph.versioning.version_store import VersionStore


def test_saved_snapshot_is_the_committed_baseline(loaded_store, tmp_path):
    loaded_store.apply([AddNode("MOD", "Draft.MD.001")])
    path = save_graph_snapshot(store=loaded_store, path=tmp_path / "data" / "model.json")

    fresh = VersionStore()
    assert load_graph_from_snapshot(store=fresh, path=path)
    assert fresh.find_node("OrderSystem.SY.001") is not None
    assert fresh.find_node("Draft.MD.001") is None
    assert fresh.diff().is_empty()
    assert not (tmp_path / "data" / "model.json.tmp").exists()


def test_missing_files_load_nothing(store, episodic, tmp_path):
    assert not load_graph_from_snapshot(store=store, path=tmp_path / "model.json")
    assert load_episodes(episodic=episodic, path=tmp_path / "episodes.json") == 0


def test_episodes_survive_save_and_load(episodic, encoder, tmp_path):
    episodic.record("add function validator", {"shape": "add_node:FUNC x1"}, 0.9)
    path = save_episodes(episodic=episodic, path=tmp_path / "episodes.json")

    restored = EpisodicStore(encoder=encoder, capacity=50)
    assert load_episodes(episodic=restored, path=path) == 1
    assert [e.request for e in restored.episodes()] == ["add function validator"]
