"""Read-only queries used by the dashboard."""

from lunar_policy.engine.actions import (
    add_player,
    advance_phase,
    advance_round,
    build_infrastructure,
    create_contract,
    end_contract,
    end_game,
)
from lunar_policy.engine.queries import (
    get_available_actions,
    get_leaderboard,
    is_locked,
    validate_action,
)
from lunar_policy.engine.state import Player
from lunar_policy.engine.utils import initialize_game_state
from lunar_policy.engine.win_condition import evaluate_winners


def test_validate_matches_phase_rules(setup_state, infra_defs):
    assert validate_action(setup_state, add_player("Dan", "Operations Manager"), infra_defs).valid
    result = validate_action(setup_state, advance_round(0), infra_defs)
    assert not result.valid
    assert "Setup" in result.error


def test_validate_reports_stale_version(setup_state):
    result = validate_action(setup_state, advance_phase(3))
    assert result.valid is False
    assert "Version mismatch" in result.error


def test_validate_build(setup_state, infra_defs):
    ok = build_infrastructure("alice", "alice", "Helium-3 Extractor")
    assert validate_action(setup_state, ok, infra_defs).valid
    wrong_specialization = build_infrastructure("bob", "bob", "Helium-3 Extractor")
    assert validate_action(setup_state, wrong_specialization, infra_defs).error == \
        "Your specialization cannot build this infrastructure"
    # Without definitions only the players are checked
    assert validate_action(setup_state, build_infrastructure("bob", "zoe", "Habitat")).error == "Owner not found"


def test_validate_contracts(setup_state):
    assert not validate_action(setup_state, create_contract("alice", "bob", ev_from_a_to_b=51)).valid
    assert validate_action(setup_state, create_contract("alice", "bob", ev_from_a_to_b=51, ev_is_per_round=True)).valid
    assert validate_action(setup_state, end_contract("nope")).error == "Contract not found"


def test_ended_game_only_accepts_end_game(setup_state):
    setup_state.ended = True
    setup_state.victory_type = "single"
    assert not validate_action(setup_state, add_player("Dan", "Operations Manager")).valid
    assert validate_action(setup_state, end_game(setup_state.version)).valid
    assert get_available_actions(setup_state) == []


def test_available_actions_by_phase(setup_state):
    setup_actions = get_available_actions(setup_state)
    assert "add_player" in setup_actions
    assert "advance_round" not in setup_actions

    setup_state.phase = "Operations"
    setup_state.round = 2
    operations_actions = get_available_actions(setup_state)
    assert "advance_round" in operations_actions
    assert "add_player" not in operations_actions


def test_leaderboard_ranks_by_combined_score():
    players = [
        Player("a", "Ann", 100, 5),
        Player("b", "Ben", 80, 25),
        Player("c", "Cy", 120, 0),
        Player("d", "Dee", 10, 10),
    ]
    board = get_leaderboard(players)
    assert [row["name"] for row in board] == ["Cy", "Ann", "Ben", "Dee"]
    assert [row["rank"] for row in board] == [1, 2, 2, 4]
    assert board[0]["score"] == 120


def test_is_locked():
    state = initialize_game_state("g")
    state.players = [Player("a", "Ann", 300, 0)]
    assert not is_locked(state)
    assert not is_locked(state, evaluate_winners(state.players, ev_threshold=500, rep_threshold=0))
    assert is_locked(state, evaluate_winners(state.players, ev_threshold=250, rep_threshold=0))
    state.ended = True
    assert is_locked(state)
