"""
Victory evaluation.

Automatic path: players with EV >= ev_threshold AND REP >= rep_threshold qualify.
EV is always compared; a zero REP threshold means REP is ignored.
Tie path: among qualifiers, the highest EV+REP wins; several players sharing the top
EV+REP win cooperatively.
Force path ("End Game"): if nobody qualifies, all players are ranked by EV+REP instead.

Pure functions; players are never mutated.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from lunar_policy.config import GameSettings, get_game_settings
from lunar_policy.engine import VICTORY_COOPERATIVE, VICTORY_SINGLE, VICTORY_TIEBREAKER
from lunar_policy.engine.state import Player


@dataclass(frozen=True)
class WinEvaluationResult:
    winners: tuple[Player, ...] = field(default_factory=tuple)
    victory_type: str | None = None  # None = no winner
    ended: bool = False  # a win condition was met or forced
    threshold_met: bool = False  # the automatic (non-forced) condition fired

    @property
    def winner_ids(self) -> list[str]:
        return [p.id for p in self.winners]

    def to_dict(self) -> dict[str, Any]:
        return {
            "winners": [p.to_dict() for p in self.winners],
            "winner_player_ids": self.winner_ids,
            "victory_type": self.victory_type,
            "ended": self.ended,
            "threshold_met": self.threshold_met,
        }


NO_WINNER = WinEvaluationResult()


def meets_threshold(player: Player, ev_threshold: int, rep_threshold: int) -> bool:
    ev_ok = player.ev >= ev_threshold
    rep_ok = rep_threshold == 0 or player.rep >= rep_threshold
    return ev_ok and rep_ok


def ranking_key(player: Player) -> tuple[int, int, str]:
    """EV desc, then REP desc, then name asc. Ordering only; never decides who wins."""
    return (-player.ev, -player.rep, player.name)


def evaluate_winners(
    players: Iterable[Player],
    force: bool = False,
    ev_threshold: int | None = None,
    rep_threshold: int | None = None,
    settings: GameSettings | None = None,
) -> WinEvaluationResult:
    """
    Decide whether the game has ended and who won.

    Args:
        players: Current standings (may be empty)
        force: Manual "End Game": rank everyone when no one met the thresholds
        ev_threshold: Override for settings.win.ev_threshold
        rep_threshold: Override for settings.win.rep_threshold
        settings: Defaults to the process-wide GameSettings

    Returns:
        WinEvaluationResult. Never raises for an empty or unqualified field of players.
    """
    if ev_threshold is None or rep_threshold is None:
        settings = settings or get_game_settings()
        if ev_threshold is None:
            ev_threshold = settings.win.ev_threshold
        if rep_threshold is None:
            rep_threshold = settings.win.rep_threshold

    players = list(players)
    threshold_winners = [
        p for p in players if meets_threshold(p, ev_threshold, rep_threshold)
    ]

    if not threshold_winners and not force:
        return NO_WINNER

    threshold_met = len(threshold_winners) > 0
    pool = threshold_winners if threshold_met else players
    if not pool:
        # Forced with nobody to rank
        return NO_WINNER

    pool = sorted(pool, key=ranking_key)
    top = pool[0]
    top_score = top.ev + top.rep
    tied = [p for p in pool if p.ev + p.rep == top_score]

    if len(tied) == 1:
        return WinEvaluationResult(
            winners=(top,),
            victory_type=VICTORY_SINGLE if threshold_met else VICTORY_TIEBREAKER,
            ended=True,
            threshold_met=threshold_met,
        )

    return WinEvaluationResult(
        winners=tuple(tied),
        victory_type=VICTORY_COOPERATIVE,
        ended=True,
        threshold_met=threshold_met,
    )
