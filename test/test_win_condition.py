"""Victory evaluation: threshold gating, tie handling, forced ranking."""

import pytest

from lunar_policy.config import GameSettings, WinSettings
from lunar_policy.engine.state import Player
from lunar_policy.engine.win_condition import NO_WINNER, evaluate_winners, meets_threshold


def _player(name: str, ev: int, rep: int) -> Player:
    return Player(id=name.lower(), name=name, ev=ev, rep=rep)


def _names(result):
    return [p.name for p in result.winners]


class TestThresholdGate:
    def test_nobody_qualifies_without_force(self):
        players = [_player("A", 100, 5), _player("B", 249, 50)]
        result = evaluate_winners(players, ev_threshold=250, rep_threshold=0)
        assert result == NO_WINNER
        assert result.winners == ()
        assert result.victory_type is None
        assert result.ended is False

    def test_rep_threshold_must_also_be_met(self):
        players = [_player("A", 400, 5)]
        result = evaluate_winners(players, ev_threshold=250, rep_threshold=10)
        assert result.ended is False

    def test_single_qualifier_wins_outright(self):
        result = evaluate_winners([_player("A", 260, 0)], ev_threshold=250, rep_threshold=0)
        assert _names(result) == ["A"]
        assert result.victory_type == "single"
        assert result.ended is True
        assert result.threshold_met is True

    def test_zero_rep_threshold_ignores_rep(self):
        solo = _player("A", 300, -999)
        assert meets_threshold(solo, 250, 0)
        result = evaluate_winners([solo], ev_threshold=250, rep_threshold=0)
        assert result.victory_type == "single"

    def test_zero_ev_threshold_still_compares_ev(self):
        broke = _player("A", -20, 5)
        assert not meets_threshold(broke, 0, 0)
        result = evaluate_winners([broke], ev_threshold=0, rep_threshold=0)
        assert result == NO_WINNER
        assert result.ended is False
        assert meets_threshold(_player("B", 0, 5), 0, 0)

    def test_thresholds_default_to_settings(self):
        settings = GameSettings(win=WinSettings(ev_threshold=100, rep_threshold=0))
        result = evaluate_winners([_player("A", 100, 0)], settings=settings)
        assert result.victory_type == "single"


class TestTies:
    def test_equal_top_score_is_cooperative(self):
        players = [_player("A", 300, 0), _player("B", 250, 50), _player("C", 260, 0)]
        result = evaluate_winners(players, ev_threshold=250, rep_threshold=0)
        assert result.victory_type == "cooperative"
        assert _names(result) == ["A", "B"]
        assert result.threshold_met is True

    def test_tie_candidates_come_only_from_qualifiers(self):
        players = [_player("A", 500, 0), _player("B", 450, 50)]
        result = evaluate_winners(players, ev_threshold=500, rep_threshold=0)
        assert _names(result) == ["A"]
        assert result.victory_type == "single"

    def test_lower_qualifier_is_not_a_winner(self):
        players = [_player("A", 500, 0), _player("B", 300, 50)]
        result = evaluate_winners(players, ev_threshold=500, rep_threshold=0)
        assert _names(result) == ["A"]
        assert result.victory_type == "single"

    def test_top_is_chosen_by_ev_first(self):
        # B has the larger EV+REP, but ranking puts A first and only A's score is matched
        players = [_player("A", 300, 0), _player("B", 290, 50)]
        result = evaluate_winners(players, ev_threshold=250, rep_threshold=0)
        assert _names(result) == ["A"]

    def test_same_ev_ranks_by_rep_then_name(self):
        players = [_player("Zed", 300, 10), _player("Amy", 300, 10), _player("Bo", 300, 20)]
        result = evaluate_winners(players, ev_threshold=250, rep_threshold=0)
        assert _names(result) == ["Bo"]

    def test_cooperative_order_is_stable(self):
        players = [_player("Zed", 300, 0), _player("Amy", 300, 0)]
        result = evaluate_winners(players, ev_threshold=250, rep_threshold=0)
        assert _names(result) == ["Amy", "Zed"]
        reversed_result = evaluate_winners(list(reversed(players)), ev_threshold=250, rep_threshold=0)
        assert _names(reversed_result) == ["Amy", "Zed"]

    def test_players_sharing_a_name_all_win(self):
        players = [
            Player(id="sam-1", name="Sam", ev=300, rep=10),
            Player(id="sam-2", name="Sam", ev=300, rep=10),
        ]
        result = evaluate_winners(players, ev_threshold=250, rep_threshold=0)
        assert result.victory_type == "cooperative"
        assert sorted(result.winner_ids) == ["sam-1", "sam-2"]


class TestForcedRanking:
    def test_forced_ranks_everyone_when_nobody_qualifies(self):
        players = [_player("A", 30, 10), _player("B", 20, 20), _player("C", 25, 5)]
        result = evaluate_winners(players, force=True, ev_threshold=1000, rep_threshold=0)
        assert result.victory_type == "cooperative"
        assert _names(result) == ["A", "B"]
        assert result.threshold_met is False
        assert result.ended is True

    def test_forced_unique_leader_is_tiebreaker_victory(self):
        players = [_player("A", 90, 10), _player("B", 40, 5)]
        result = evaluate_winners(players, force=True, ev_threshold=1000, rep_threshold=0)
        assert _names(result) == ["A"]
        assert result.victory_type == "tiebreaker"
        assert result.threshold_met is False

    def test_force_does_not_override_threshold_winners(self):
        players = [_player("A", 260, 0), _player("B", 100, 500)]
        result = evaluate_winners(players, force=True, ev_threshold=250, rep_threshold=0)
        assert _names(result) == ["A"]
        assert result.victory_type == "single"

    def test_forced_ranking_includes_negative_balances(self):
        players = [_player("A", -10, -5), _player("B", -5, -10), _player("C", -20, 0)]
        result = evaluate_winners(players, force=True, ev_threshold=250, rep_threshold=0)
        assert result.ended is True
        assert result.threshold_met is False
        assert result.victory_type == "cooperative"
        assert _names(result) == ["B", "A"]

    def test_forced_with_no_players_has_no_winner(self):
        result = evaluate_winners([], force=True, ev_threshold=250, rep_threshold=0)
        assert result == NO_WINNER
        assert result.threshold_met is False


def test_evaluation_is_pure():
    players = [_player("A", 300, 0), _player("B", 250, 50)]
    before = [p.to_dict() for p in players]
    first = evaluate_winners(players, ev_threshold=250, rep_threshold=0)
    second = evaluate_winners(players, ev_threshold=250, rep_threshold=0)
    assert first == second
    assert first.to_dict() == second.to_dict()
    assert [p.to_dict() for p in players] == before


@pytest.mark.parametrize("ev,expected", [(249, False), (250, True), (251, True)])
def test_threshold_is_inclusive(ev, expected):
    assert meets_threshold(_player("A", ev, 0), 250, 0) is expected
