"""
Query functions for UI integration.
These functions help the dashboard understand what actions are available
without mutating game state.
"""

from dataclasses import dataclass
from typing import Any, Iterable

from lunar_policy.engine import SPECIALIZATIONS
from lunar_policy.engine.actions import Action
from lunar_policy.engine.definitions import InfrastructureDefinition, get_definition_by_type
from lunar_policy.engine.reducer import PHASE_ALLOWED_ACTIONS, VERSIONED_ACTIONS
from lunar_policy.engine.state import GameState, Player
from lunar_policy.engine.win_condition import WinEvaluationResult


@dataclass
class ValidationResult:
    """Result of action validation."""
    valid: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error}


# ===== Action Validation =====

def validate_action(
    state: GameState,
    action: Action,
    infra_defs: dict[str, InfrastructureDefinition] | None = None,
) -> ValidationResult:
    """
    Validate an action without applying it.
    Returns ValidationResult with valid=True or valid=False with error message.
    Infrastructure checks are skipped when infra_defs is not given.
    """
    # Version first, matching the reducer
    if action.type in VERSIONED_ACTIONS and action.expected_version != state.version:
        return ValidationResult(
            False,
            f"Version mismatch - another update occurred "
            f"(expected {action.expected_version}, current {state.version})"
        )

    if state.ended:
        if action.type == "end_game":
            return ValidationResult(True)
        return ValidationResult(
            False,
            f"Game is over ({state.victory_type or 'no'} victory). No further actions are allowed."
        )

    allowed = PHASE_ALLOWED_ACTIONS.get(state.phase, [])
    if action.type not in allowed:
        return ValidationResult(
            False,
            f"Cannot {action.type} during {state.phase} phase. Allowed: {allowed}"
        )

    if action.type == "add_player":
        return _validate_add_player(state, action)
    elif action.type == "manual_adjustment":
        return _validate_manual_adjustment(state, action)
    elif action.type == "build_infrastructure":
        return _validate_build(state, action, infra_defs)
    elif action.type == "create_contract":
        return _validate_create_contract(state, action)
    elif action.type == "end_contract":
        return _validate_end_contract(state, action)
    elif action.type in ["advance_phase", "advance_round", "end_game"]:
        return ValidationResult(True)

    return ValidationResult(False, f"Unknown action type: {action.type}")


def _validate_add_player(state: GameState, action: Action) -> ValidationResult:
    if state.round != 0:
        return ValidationResult(False, "Joining as a new player is only allowed during Setup before Round 1")
    if not str(action.payload.get("name") or "").strip():
        return ValidationResult(False, "Player name is required")
    if action.payload.get("specialization") not in SPECIALIZATIONS:
        return ValidationResult(False, f"Unknown specialization: {action.payload.get('specialization')}")
    return ValidationResult(True)


def _validate_manual_adjustment(state: GameState, action: Action) -> ValidationResult:
    if state.get_player(action.payload.get("player_id")) is None:
        return ValidationResult(False, f"Player not found: {action.payload.get('player_id')}")
    return ValidationResult(True)


def _validate_build(
    state: GameState,
    action: Action,
    infra_defs: dict[str, InfrastructureDefinition] | None,
) -> ValidationResult:
    """Builder pays, so affordability and specialization are checked against the builder."""
    builder = state.get_player(action.payload.get("builder_id"))
    if builder is None:
        return ValidationResult(False, "Builder not found")
    if state.get_player(action.payload.get("owner_id")) is None:
        return ValidationResult(False, "Owner not found")
    if infra_defs is None:
        return ValidationResult(True)

    infra_def = get_definition_by_type(infra_defs, action.payload.get("infrastructure_type"))
    if infra_def is None:
        return ValidationResult(False, f"Infrastructure type not found: {action.payload.get('infrastructure_type')}")
    if not infra_def.player_buildable:
        return ValidationResult(False, "This infrastructure cannot be built by players")
    if builder.specialization not in infra_def.can_be_operated_by:
        return ValidationResult(False, "Your specialization cannot build this infrastructure")
    if builder.ev < infra_def.cost:
        return ValidationResult(False, f"Insufficient EV: need {infra_def.cost}, have {builder.ev}")
    return ValidationResult(True)


def _validate_create_contract(state: GameState, action: Action) -> ValidationResult:
    payload = action.payload
    party_a = state.get_player(payload.get("party_a_id"))
    party_b = state.get_player(payload.get("party_b_id"))
    if party_a is None or party_b is None:
        return ValidationResult(False, "Both contract parties must be players in this game")
    if party_a.id == party_b.id:
        return ValidationResult(False, "A contract needs two different players")

    ev_a_to_b = payload.get("ev_from_a_to_b") or 0
    ev_b_to_a = payload.get("ev_from_b_to_a") or 0
    if ev_a_to_b < 0 or ev_b_to_a < 0:
        return ValidationResult(False, "Contract EV amounts must be >= 0")
    if not payload.get("ev_is_per_round"):
        if ev_a_to_b > party_a.ev:
            return ValidationResult(False, f"{party_a.name} has insufficient EV")
        if ev_b_to_a > party_b.ev:
            return ValidationResult(False, f"{party_b.name} has insufficient EV")
    return ValidationResult(True)


def _validate_end_contract(state: GameState, action: Action) -> ValidationResult:
    contract = state.get_contract(action.payload.get("contract_id"))
    if contract is None:
        return ValidationResult(False, "Contract not found")
    if not contract.is_active:
        return ValidationResult(False, "Contract is not active")
    breaker_id = action.payload.get("breaker_id")
    if breaker_id and breaker_id not in (contract.party_a_id, contract.party_b_id):
        return ValidationResult(False, "Breaker must be a party to the contract")
    return ValidationResult(True)


# ===== Dashboard Queries =====

def get_available_actions(state: GameState) -> list[str]:
    """
    Action types the facilitator can take right now.
    Empty once the game has ended.
    """
    if state.ended:
        return []
    actions = list(PHASE_ALLOWED_ACTIONS.get(state.phase, []))
    if state.round != 0 and "add_player" in actions:
        actions.remove("add_player")
    return actions


def get_leaderboard(players: Iterable[Player]) -> list[dict[str, Any]]:
    """
    Players ranked by EV+REP (desc), then EV, REP, name.
    Ranks are shared by players with the same EV+REP.
    """
    ordered = sorted(players, key=lambda p: (-p.score, -p.ev, -p.rep, p.name))
    leaderboard = []
    rank = 0
    previous_score = None
    for position, player in enumerate(ordered, start=1):
        if player.score != previous_score:
            rank = position
            previous_score = player.score
        leaderboard.append({
            "rank": rank,
            "player_id": player.id,
            "name": player.name,
            "ev": player.ev,
            "rep": player.rep,
            "score": player.score,
        })
    return leaderboard


def is_locked(state: GameState, result: WinEvaluationResult | None = None) -> bool:
    """
    True when the dashboard should stop offering mutating controls:
    the stored game has ended, or the latest evaluation says it has.
    """
    if state.ended:
        return True
    return result is not None and result.ended
