"""
Game events for UI hooks and logging.
Events describe what happened during action processing; they double as the ledger
the dashboard shows.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Phase/Round events
PHASE_CHANGED = "phase_changed"
ROUND_ENDED = "round_ended"

# Player events
PLAYER_JOINED = "player_joined"
RESOURCES_CHANGED = "resources_changed"

# Infrastructure events
INFRASTRUCTURE_BUILT = "infrastructure_built"
MAINTENANCE_CHARGED = "maintenance_charged"
YIELD_COLLECTED = "yield_collected"

# Contract events
CONTRACT_CREATED = "contract_created"
CONTRACT_PAYMENT = "contract_payment"
CONTRACT_ENDED = "contract_ended"

# Victory events
GAME_ENDED = "game_ended"


# ===== Event Factory Functions =====

def phase_changed(
    old_round: int,
    old_phase: str,
    new_round: int,
    new_phase: str,
    new_version: int,
) -> GameEvent:
    return GameEvent(PHASE_CHANGED, {
        "old_round": old_round,
        "old_phase": old_phase,
        "new_round": new_round,
        "new_phase": new_phase,
        "new_version": new_version,
    })


def round_ended(round_number: int) -> GameEvent:
    """Emitted by advance_round after settlement, before the phase change."""
    return GameEvent(ROUND_ENDED, {"round": round_number})


def player_joined(player_id: str, name: str, specialization: str, starter_infrastructure: str | None) -> GameEvent:
    return GameEvent(PLAYER_JOINED, {
        "player_id": player_id,
        "name": name,
        "specialization": specialization,
        "starter_infrastructure": starter_infrastructure,
    })


def resources_changed(
    player_id: str,
    ev_change: int,
    rep_change: int,
    new_ev: int,
    new_rep: int,
    reason: str,
) -> GameEvent:
    return GameEvent(RESOURCES_CHANGED, {
        "player_id": player_id,
        "ev_change": ev_change,
        "rep_change": rep_change,
        "new_ev": new_ev,
        "new_rep": new_rep,
        "reason": reason,
    })


def infrastructure_built(
    builder_id: str,
    owner_id: str,
    infrastructure_id: str,
    instance_id: str,
    cost: int,
    location: str | None,
) -> GameEvent:
    return GameEvent(INFRASTRUCTURE_BUILT, {
        "builder_id": builder_id,
        "owner_id": owner_id,
        "infrastructure_id": infrastructure_id,
        "instance_id": instance_id,
        "cost": cost,
        "location": location,
    })


def maintenance_charged(player_id: str, round_number: int, amount: int) -> GameEvent:
    return GameEvent(MAINTENANCE_CHARGED, {
        "player_id": player_id,
        "round": round_number,
        "amount": amount,
    })


def yield_collected(player_id: str, round_number: int, amount: int) -> GameEvent:
    return GameEvent(YIELD_COLLECTED, {
        "player_id": player_id,
        "round": round_number,
        "amount": amount,
    })


def contract_created(contract_id: str, party_a_id: str, party_b_id: str, ev_is_per_round: bool) -> GameEvent:
    return GameEvent(CONTRACT_CREATED, {
        "contract_id": contract_id,
        "party_a_id": party_a_id,
        "party_b_id": party_b_id,
        "ev_is_per_round": ev_is_per_round,
    })


def contract_payment(
    contract_id: str,
    payer_id: str,
    payee_id: str,
    amount: int,
    round_number: int,
) -> GameEvent:
    return GameEvent(CONTRACT_PAYMENT, {
        "contract_id": contract_id,
        "payer_id": payer_id,
        "payee_id": payee_id,
        "amount": amount,
        "round": round_number,
    })


def contract_ended(contract_id: str, status: str, reason: str | None, round_number: int) -> GameEvent:
    """status is "ended" (mutual or expired) or "broken"."""
    return GameEvent(CONTRACT_ENDED, {
        "contract_id": contract_id,
        "status": status,
        "reason": reason,
        "round": round_number,
    })


def game_ended(
    victory_type: str,
    winner_player_ids: list[str],
    threshold_met: bool,
    ev_threshold: int,
    rep_threshold: int,
    round_number: int,
) -> GameEvent:
    """
    Emitted once, when end_game declares a result.

    Args:
        victory_type: "single", "tiebreaker" or "cooperative"
        winner_player_ids: Winners in ranking order
        threshold_met: False when the result came from a forced ranking
        ev_threshold: EV threshold used for the evaluation
        rep_threshold: REP threshold used for the evaluation
        round_number: Round in which the game ended
    """
    return GameEvent(GAME_ENDED, {
        "victory_type": victory_type,
        "winner_player_ids": winner_player_ids,
        "threshold_met": threshold_met,
        "ev_threshold": ev_threshold,
        "rep_threshold": rep_threshold,
        "round": round_number,
    })
