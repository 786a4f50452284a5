"""Game state serialization and dashboard snapshot validation."""

import pytest

from lunar_policy.engine.errors import SnapshotError
from lunar_policy.engine.state import DashboardSnapshot, GameState
from lunar_policy.engine.utils import build_dashboard_snapshot


def _snapshot(**game_state_overrides):
    game_state = {"round": 2, "phase": "Operations", "version": 7}
    game_state.update(game_state_overrides)
    return {
        "game_state": game_state,
        "players": [
            {"id": "p1", "name": "Alice", "ev": 120, "rep": 14, "specialization": "Resource Extractor"},
            {"id": "p2", "name": "Bob", "ev": -5, "rep": 3},
        ],
    }


def test_state_survives_json(setup_state):
    restored = GameState.from_json(setup_state.to_json())
    assert restored == setup_state


def test_state_from_json_rejects_garbage():
    with pytest.raises(SnapshotError):
        GameState.from_json("{not json")
    with pytest.raises(SnapshotError):
        GameState.from_json("[1, 2]")
    with pytest.raises(SnapshotError, match="Unknown phase"):
        GameState.from_dict({"phase": "Lunch"})


@pytest.mark.parametrize("overrides", [
    {"players": ["alice"]},
    {"players": [{"id": "alice", "name": "Alice", "ev": "lots", "rep": 10}]},
    {"players": [{"id": "alice", "name": "Alice", "rep": 10}]},
    {"infrastructure": [7]},
    {"contracts": [None]},
    {"contracts": [{"id": "c1", "party_a_id": "alice", "party_b_id": "bob", "status": "void"}]},
    {"version": "3"},
    {"round": -1},
    {"ended": "no"},
    {"victory_type": "landslide"},
])
def test_stored_state_rejects_malformed_fields(setup_state, overrides):
    data = setup_state.to_dict()
    data.update(overrides)
    with pytest.raises(SnapshotError):
        GameState.from_dict(data)


def test_stored_state_fills_missing_optional_fields():
    state = GameState.from_dict({"game_id": "g", "players": [
        {"id": "alice", "name": "Alice", "ev": -15, "rep": 0},
    ]})
    assert (state.round, state.phase, state.version) == (0, "Setup", 0)
    assert state.players[0].ev == -15
    assert state.players[0].specialization is None
    assert state.contracts == []


def test_state_save_and_load(setup_state, tmp_path):
    path = tmp_path / "game.json"
    setup_state.save(str(path))
    assert GameState.load(str(path)).to_dict() == setup_state.to_dict()


def test_snapshot_parses_valid_payload():
    snapshot = DashboardSnapshot.from_dict(_snapshot())
    assert snapshot.game_state.round == 2
    assert snapshot.game_state.version == 7
    assert snapshot.game_state.ended is False
    assert [p.name for p in snapshot.players] == ["Alice", "Bob"]
    assert snapshot.players[1].specialization is None
    assert snapshot.to_dict()["players"][0]["ev"] == 120


def test_snapshot_from_state(setup_state):
    snapshot = build_dashboard_snapshot(setup_state)
    assert snapshot.game_state.phase == "Setup"
    assert len(snapshot.players) == 3
    # Parsing what we produce gives the same snapshot back
    assert DashboardSnapshot.from_dict(snapshot.to_dict()) == snapshot


@pytest.mark.parametrize("payload", [
    None,
    [],
    {"players": []},
    {"game_state": "Operations", "players": []},
])
def test_snapshot_rejects_bad_shape(payload):
    with pytest.raises(SnapshotError):
        DashboardSnapshot.from_dict(payload)


@pytest.mark.parametrize("overrides", [
    {"phase": "Recess"},
    {"round": -1},
    {"version": "7"},
    {"version": True},
    {"ended": "yes"},
    {"victory_type": "landslide"},
    {"winner_player_ids": "p1"},
])
def test_snapshot_rejects_bad_game_state(overrides):
    with pytest.raises(SnapshotError):
        DashboardSnapshot.from_dict(_snapshot(**overrides))


@pytest.mark.parametrize("player", [
    "p1",
    {"name": "Alice", "ev": 1, "rep": 1},
    {"id": "p1", "name": "", "ev": 1, "rep": 1},
    {"id": "p1", "name": "Alice", "ev": "100", "rep": 1},
    {"id": "p1", "name": "Alice", "ev": 100},
    {"id": "p1", "name": "Alice", "ev": 100, "rep": 2.5},
])
def test_snapshot_rejects_bad_player(player):
    payload = _snapshot()
    payload["players"].append(player)
    with pytest.raises(SnapshotError):
        DashboardSnapshot.from_dict(payload)
