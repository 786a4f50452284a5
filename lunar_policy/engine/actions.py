"""
Action definitions for the game.
Actions are immutable, deterministic instructions. Phase, round and end-game actions
carry the caller's last-known version; the reducer rejects them if it is stale.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Action:
    """Base action class. All actions have a type and payload."""
    type: str  # e.g., "advance_phase", "advance_round", "end_game", "add_player"
    payload: dict = field(default_factory=dict)
    expected_version: int | None = None  # required for version-gated action types


def advance_phase(current_version: int) -> Action:
    """
    Move to the next phase.
    Setup -> Governance (round 1), Governance -> Operations, Operations -> Governance (next round).
    Operations -> Governance through advance_phase skips round-end settlement; use advance_round for that.
    """
    return Action(type="advance_phase", expected_version=current_version)


def advance_round(current_version: int) -> Action:
    """
    Settle the round and move to Governance of the next round. Only valid in Operations.
    Settlement: maintenance, yield, per-round contract payments, contract REP bonus, contract expiry.
    """
    return Action(type="advance_round", expected_version=current_version)


def end_game(
    current_version: int,
    force: bool = False,
    ev_threshold: int | None = None,
    rep_threshold: int | None = None,
) -> Action:
    """
    Evaluate and, if decided, declare the game ended.
    force=True ranks all players by EV+REP when nobody met the thresholds.
    Thresholds default to the configured win settings.

    Example: end_game(7, force=True)  # facilitator pressed "End Game" at version 7
    """
    return Action(
        type="end_game",
        payload={
            "force": force,
            "ev_threshold": ev_threshold,
            "rep_threshold": rep_threshold,
        },
        expected_version=current_version,
    )


def add_player(name: str, specialization: str, player_id: str | None = None) -> Action:
    """Join a new player. Only allowed during Setup, before round 1."""
    return Action(
        type="add_player",
        payload={"name": name, "specialization": specialization, "player_id": player_id},
    )


def manual_adjustment(player_id: str, ev_change: int, rep_change: int, reason: str) -> Action:
    """Facilitator correction of a player's EV and/or REP."""
    return Action(
        type="manual_adjustment",
        payload={
            "player_id": player_id,
            "ev_change": ev_change,
            "rep_change": rep_change,
            "reason": reason,
        },
    )


def build_infrastructure(
    builder_id: str,
    owner_id: str,
    infrastructure_type: str,  # display type, e.g. "Solar Array"
    location: str | None = None,
    infrastructure_instance_id: str | None = None,
) -> Action:
    """
    Build infrastructure. The builder pays the cost; the owner receives the infrastructure.
    Example: build_infrastructure(alice_id, bob_id, "Habitat", "Shackleton Rim")
    """
    return Action(
        type="build_infrastructure",
        payload={
            "builder_id": builder_id,
            "owner_id": owner_id,
            "infrastructure_type": infrastructure_type,
            "location": location,
            "instance_id": infrastructure_instance_id,
        },
    )


def create_contract(
    party_a_id: str,
    party_b_id: str,
    ev_from_a_to_b: int = 0,
    ev_from_b_to_a: int = 0,
    ev_is_per_round: bool = False,
    duration_rounds: int | None = None,
    contract_id: str | None = None,
) -> Action:
    """
    Create a contract between two players.
    One-off EV (ev_is_per_round=False) is transferred immediately; per-round EV at each round-end.
    duration_rounds=None means the contract runs until ended.
    """
    return Action(
        type="create_contract",
        payload={
            "party_a_id": party_a_id,
            "party_b_id": party_b_id,
            "ev_from_a_to_b": ev_from_a_to_b,
            "ev_from_b_to_a": ev_from_b_to_a,
            "ev_is_per_round": ev_is_per_round,
            "duration_rounds": duration_rounds,
            "contract_id": contract_id,
        },
    )


def end_contract(
    contract_id: str,
    is_broken: bool = False,
    reason: str | None = None,
    breaker_id: str | None = None,
) -> Action:
    """
    End an active contract. Mutual endings award the completion bonus;
    broken contracts penalise the breaker (party A unless breaker_id says otherwise).
    """
    return Action(
        type="end_contract",
        payload={
            "contract_id": contract_id,
            "is_broken": is_broken,
            "reason": reason,
            "breaker_id": breaker_id,
        },
    )
