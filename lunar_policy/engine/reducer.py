"""
Main game reducer.
Applies actions to state, enforcing rules and producing new state.
Returns (new_state, events) where events describe what happened.

Phase, round and end-game actions are version-gated: the action's expected_version must
equal state.version, otherwise StaleVersionError is raised and nothing changes. A successful
gated transition increments version by exactly 1.
"""

import logging
import uuid
from datetime import datetime, timezone

from lunar_policy.config import GameSettings, get_game_settings
from lunar_policy.engine import (
    PHASE_GOVERNANCE,
    PHASE_OPERATIONS,
    PHASE_SETUP,
    SPECIALIZATIONS,
)
from lunar_policy.engine.actions import Action
from lunar_policy.engine.definitions import (
    InfrastructureDefinition,
    get_definition_by_type,
    get_starter_definition,
)
from lunar_policy.engine.errors import GameOverError, StaleVersionError
from lunar_policy.engine.events import (
    GameEvent,
    phase_changed,
    round_ended,
    player_joined,
    resources_changed,
    infrastructure_built,
    maintenance_charged,
    yield_collected,
    contract_created,
    contract_payment,
    contract_ended,
    game_ended,
)
from lunar_policy.engine.state import Contract, GameState, Player, PlayerInfrastructure
from lunar_policy.engine.win_condition import evaluate_winners

logger = logging.getLogger(__name__)


# Phase rules: which action types are allowed in which phases
PHASE_ALLOWED_ACTIONS = {
    PHASE_SETUP: [
        "add_player", "manual_adjustment", "build_infrastructure",
        "create_contract", "end_contract", "advance_phase", "end_game",
    ],
    PHASE_GOVERNANCE: [
        "manual_adjustment", "build_infrastructure",
        "create_contract", "end_contract", "advance_phase", "end_game",
    ],
    PHASE_OPERATIONS: [
        "manual_adjustment", "build_infrastructure",
        "create_contract", "end_contract", "advance_phase", "advance_round", "end_game",
    ],
}

# Actions that must carry the caller's last-known version
VERSIONED_ACTIONS = ("advance_phase", "advance_round", "end_game")

# Phase transition table for advance_phase: phase -> (next phase, round increment)
PHASE_TRANSITIONS = {
    PHASE_SETUP: (PHASE_GOVERNANCE, 1),  # begin round 1
    PHASE_GOVERNANCE: (PHASE_OPERATIONS, 0),
    PHASE_OPERATIONS: (PHASE_GOVERNANCE, 1),
}


def check_version(state: GameState, action: Action) -> None:
    """Raise StaleVersionError if a version-gated action carries a stale version."""
    if action.type not in VERSIONED_ACTIONS:
        return
    if action.expected_version is None or action.expected_version != state.version:
        logger.warning(
            "Rejected %s for game %s: expected version %s, current %s",
            action.type, state.game_id, action.expected_version, state.version,
        )
        raise StaleVersionError(action.expected_version, state.version)


def _validate_action_for_phase(action: Action, state: GameState) -> None:
    """Validate that an action is allowed in the current phase."""
    phase = state.phase
    allowed_actions = PHASE_ALLOWED_ACTIONS.get(phase, [])

    if action.type not in allowed_actions:
        if action.type == "advance_round":
            raise ValueError("Advance Round is only allowed from Operations phase")
        if action.type == "add_player":
            raise ValueError("Joining as a new player is only allowed during Setup before Round 1")
        raise ValueError(
            f"Action '{action.type}' is not allowed in phase '{phase}'. "
            f"Allowed actions: {', '.join(allowed_actions)}"
        )


def apply_action(
    state: GameState,
    action: Action,
    infra_defs: dict[str, InfrastructureDefinition],
    settings: GameSettings | None = None,
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply a single action to the current state, returning new state and events.

    Validates:
    - Version for version-gated actions (StaleVersionError)
    - Game not already ended (GameOverError); end_game on an ended game is a no-op
    - Action is valid for current phase (ValueError)

    Args:
        state: Current game state (not modified)
        action: Action to apply
        infra_defs: Infrastructure definitions
        settings: Game settings; defaults to the process-wide settings

    Returns:
        Tuple of (new_state, events) where events describe what happened
    """
    settings = settings or get_game_settings()

    check_version(state, action)

    if state.ended:
        if action.type == "end_game":
            # Idempotent: the stored result stands
            return state.copy(), []
        raise GameOverError(state.victory_type, state.winner_player_ids)

    _validate_action_for_phase(action, state)

    new_state = state.copy()
    events: list[GameEvent] = []

    if action.type == "advance_phase":
        new_state, evts = _handle_advance_phase(new_state)
        events.extend(evts)

    elif action.type == "advance_round":
        new_state, evts = _handle_advance_round(new_state, infra_defs, settings)
        events.extend(evts)

    elif action.type == "end_game":
        new_state, evts = _handle_end_game(new_state, action, settings)
        events.extend(evts)

    elif action.type == "add_player":
        new_state, evts = _handle_add_player(new_state, action, infra_defs, settings)
        events.extend(evts)

    elif action.type == "manual_adjustment":
        new_state, evts = _handle_manual_adjustment(new_state, action)
        events.extend(evts)

    elif action.type == "build_infrastructure":
        new_state, evts = _handle_build_infrastructure(new_state, action, infra_defs)
        events.extend(evts)

    elif action.type == "create_contract":
        new_state, evts = _handle_create_contract(new_state, action, settings)
        events.extend(evts)

    elif action.type == "end_contract":
        new_state, evts = _handle_end_contract(new_state, action, settings)
        events.extend(evts)

    else:
        raise ValueError(f"Unknown action type: {action.type}")

    return new_state, events


def _require_player(state: GameState, player_id: str, role: str = "Player") -> Player:
    player = state.get_player(player_id)
    if player is None:
        raise ValueError(f"{role} not found: {player_id}")
    return player


def _require_int(payload: dict, key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return value


def _adjust(
    player: Player,
    ev_change: int,
    rep_change: int,
    reason: str,
    events: list[GameEvent],
) -> None:
    """Apply an EV/REP change to a player and record it. Zero changes are not recorded."""
    if ev_change == 0 and rep_change == 0:
        return
    player.ev += ev_change
    player.rep += rep_change
    events.append(resources_changed(
        player.id, ev_change, rep_change, player.ev, player.rep, reason,
    ))


def _move_phase(state: GameState, new_phase: str, new_round: int) -> GameEvent:
    old_round, old_phase = state.round, state.phase
    state.round = new_round
    state.phase = new_phase
    state.version += 1
    logger.info(
        "Game %s: %s (round %d) -> %s (round %d), version %d",
        state.game_id, old_phase, old_round, new_phase, new_round, state.version,
    )
    return phase_changed(old_round, old_phase, new_round, new_phase, state.version)


def _handle_advance_phase(state: GameState) -> tuple[GameState, list[GameEvent]]:
    """
    Advance to the next phase.
    Setup (round 0) -> Governance (round 1) -> Operations -> Governance (round + 1).
    No settlement happens here, even when leaving Operations.
    """
    next_phase, round_increment = PHASE_TRANSITIONS[state.phase]
    event = _move_phase(state, next_phase, state.round + round_increment)
    return state, [event]


def _handle_advance_round(
    state: GameState,
    infra_defs: dict[str, InfrastructureDefinition],
    settings: GameSettings,
) -> tuple[GameState, list[GameEvent]]:
    """
    Settle the current round and move to Governance of the next one.

    Order:
    1) Maintenance for active, non-starter infrastructure
    2) Yield from active infrastructure
    3) Per-round contract payments
    4) Per-round REP bonus for active contracts
    5) Finite contracts count down; those reaching 0 expire with the completion bonus
    """
    events: list[GameEvent] = []
    round_number = state.round
    contract_settings = settings.contracts

    # 1) Maintenance and 2) yield, rolled up per player
    for player in state.players:
        maintenance = 0
        produced = 0
        for pi in state.infrastructure_for(player.id, active_only=True):
            infra_def = infra_defs.get(pi.infrastructure_id)
            if infra_def is None:
                continue
            if not pi.is_starter:
                maintenance += infra_def.maintenance_cost or 0
            produced += infra_def.yield_ or 0
        if maintenance > 0:
            player.ev -= maintenance
            events.append(maintenance_charged(player.id, round_number, maintenance))
        if produced > 0:
            player.ev += produced
            events.append(yield_collected(player.id, round_number, produced))

    # 3) Per-round contract payments
    for contract in state.active_contracts():
        if not contract.ev_is_per_round:
            continue
        party_a = state.get_player(contract.party_a_id)
        party_b = state.get_player(contract.party_b_id)
        if party_a is None or party_b is None:
            continue
        if contract.ev_from_a_to_b > 0:
            party_a.ev -= contract.ev_from_a_to_b
            party_b.ev += contract.ev_from_a_to_b
            events.append(contract_payment(
                contract.id, party_a.id, party_b.id, contract.ev_from_a_to_b, round_number,
            ))
        if contract.ev_from_b_to_a > 0:
            party_b.ev -= contract.ev_from_b_to_a
            party_a.ev += contract.ev_from_b_to_a
            events.append(contract_payment(
                contract.id, party_b.id, party_a.id, contract.ev_from_b_to_a, round_number,
            ))

    # 4) REP bonus for every contract still active at round-end
    if contract_settings.rep_bonus_per_round:
        for contract in state.active_contracts():
            for party_id in (contract.party_a_id, contract.party_b_id):
                party = state.get_player(party_id)
                if party is not None:
                    _adjust(
                        party, 0, contract_settings.rep_bonus_per_round,
                        f"Round {round_number} contract bonus", events,
                    )

    # 5) Decrement finite contracts and expire
    for contract in state.active_contracts():
        if contract.rounds_remaining is None:
            continue
        contract.rounds_remaining -= 1
        if contract.rounds_remaining <= 0:
            _close_contract(state, contract, "ended", "Duration expired", round_number, events)
            _award_completion_bonus(state, contract, settings, events)

    events.append(round_ended(round_number))
    events.append(_move_phase(state, PHASE_GOVERNANCE, round_number + 1))
    return state, events


def _handle_end_game(
    state: GameState,
    action: Action,
    settings: GameSettings,
) -> tuple[GameState, list[GameEvent]]:
    """
    Evaluate winners and, if the evaluation ends the game, store the result.
    If nobody has won and the call is not forced, the state is returned unchanged.
    """
    payload = action.payload
    ev_threshold = payload.get("ev_threshold")
    rep_threshold = payload.get("rep_threshold")
    if ev_threshold is None:
        ev_threshold = settings.win.ev_threshold
    if rep_threshold is None:
        rep_threshold = settings.win.rep_threshold
    if ev_threshold < 0 or rep_threshold < 0:
        raise ValueError("Win thresholds must be >= 0")

    result = evaluate_winners(
        state.players,
        force=bool(payload.get("force", False)),
        ev_threshold=ev_threshold,
        rep_threshold=rep_threshold,
    )
    if not result.ended:
        return state, []

    state.ended = True
    state.ended_at = datetime.now(timezone.utc).isoformat()
    state.winner_player_ids = result.winner_ids
    state.victory_type = result.victory_type
    state.win_ev_threshold = ev_threshold
    state.win_rep_threshold = rep_threshold
    state.version += 1

    logger.info(
        "Game %s ended in round %d with %s victory: %s",
        state.game_id, state.round, result.victory_type,
        ", ".join(p.name for p in result.winners),
    )
    return state, [game_ended(
        result.victory_type,
        result.winner_ids,
        result.threshold_met,
        ev_threshold,
        rep_threshold,
        state.round,
    )]


def _handle_add_player(
    state: GameState,
    action: Action,
    infra_defs: dict[str, InfrastructureDefinition],
    settings: GameSettings,
) -> tuple[GameState, list[GameEvent]]:
    """
    Add a player with the starting EV/REP and their specialization's starter infrastructure.
    Only valid in Setup, round 0.
    """
    if state.round != 0:
        raise ValueError("Joining as a new player is only allowed during Setup before Round 1")

    payload = action.payload
    name = str(payload.get("name") or "").strip()
    if not name:
        raise ValueError("Player name is required")
    specialization = payload.get("specialization")
    if specialization not in SPECIALIZATIONS:
        raise ValueError(
            f"Unknown specialization {specialization!r}. Expected one of: {', '.join(SPECIALIZATIONS)}"
        )
    player_id = payload.get("player_id") or str(uuid.uuid4())
    if state.get_player(player_id) is not None:
        raise ValueError(f"Player {player_id} already exists")

    player = Player(
        id=player_id,
        name=name,
        ev=settings.starting_ev,
        rep=settings.starting_rep,
        specialization=specialization,
    )
    state.players.append(player)

    starter = get_starter_definition(infra_defs, specialization)
    if starter is not None:
        state.infrastructure.append(PlayerInfrastructure(
            id=str(uuid.uuid4()),
            player_id=player_id,
            infrastructure_id=starter.id,
            is_active=True,
            is_starter=True,
            built_in_round=state.round,
        ))

    return state, [player_joined(player_id, name, specialization, starter.id if starter else None)]


def _handle_manual_adjustment(state: GameState, action: Action) -> tuple[GameState, list[GameEvent]]:
    payload = action.payload
    player = _require_player(state, payload.get("player_id"))
    ev_change = _require_int(payload, "ev_change")
    rep_change = _require_int(payload, "rep_change")
    reason = str(payload.get("reason") or "Manual adjustment")

    events: list[GameEvent] = []
    _adjust(player, ev_change, rep_change, reason, events)
    return state, events


def _handle_build_infrastructure(
    state: GameState,
    action: Action,
    infra_defs: dict[str, InfrastructureDefinition],
) -> tuple[GameState, list[GameEvent]]:
    """
    Build infrastructure for an owner, paid for by the builder.
    The definition must be player-buildable and operable by the builder's specialization.
    """
    payload = action.payload
    builder = _require_player(state, payload.get("builder_id"), "Builder")
    owner = _require_player(state, payload.get("owner_id"), "Owner")

    infrastructure_type = payload.get("infrastructure_type")
    infra_def = get_definition_by_type(infra_defs, infrastructure_type)
    if infra_def is None:
        raise ValueError(f"Infrastructure type not found: {infrastructure_type}")
    if not infra_def.player_buildable:
        raise ValueError("This infrastructure cannot be built by players")
    if builder.specialization not in infra_def.can_be_operated_by:
        raise ValueError("Your specialization cannot build this infrastructure")
    if builder.ev < infra_def.cost:
        raise ValueError(f"{builder.name} has insufficient EV")

    builder.ev -= infra_def.cost
    instance_id = payload.get("instance_id") or str(uuid.uuid4())
    location = payload.get("location")
    state.infrastructure.append(PlayerInfrastructure(
        id=instance_id,
        player_id=owner.id,
        infrastructure_id=infra_def.id,
        is_active=True,
        is_starter=False,
        location=location,
        built_in_round=state.round,
    ))

    return state, [infrastructure_built(
        builder.id, owner.id, infra_def.id, instance_id, infra_def.cost, location,
    )]


def _handle_create_contract(
    state: GameState,
    action: Action,
    settings: GameSettings,
) -> tuple[GameState, list[GameEvent]]:
    """
    Create a contract. One-off EV moves now (payer must afford it);
    per-round EV moves at each advance_round. Both parties get the creation REP bonus.
    """
    payload = action.payload
    party_a = _require_player(state, payload.get("party_a_id"), "Party A")
    party_b = _require_player(state, payload.get("party_b_id"), "Party B")
    if party_a.id == party_b.id:
        raise ValueError("A contract needs two different players")

    ev_a_to_b = _require_int(payload, "ev_from_a_to_b")
    ev_b_to_a = _require_int(payload, "ev_from_b_to_a")
    if ev_a_to_b < 0 or ev_b_to_a < 0:
        raise ValueError("Contract EV amounts must be >= 0")
    per_round = bool(payload.get("ev_is_per_round", False))
    duration = payload.get("duration_rounds")
    if duration is not None and (isinstance(duration, bool) or not isinstance(duration, int) or duration < 1):
        raise ValueError("duration_rounds must be a positive integer or None")

    events: list[GameEvent] = []
    contract_id = payload.get("contract_id") or str(uuid.uuid4())

    if not per_round:
        if ev_a_to_b > party_a.ev:
            raise ValueError(f"{party_a.name} has insufficient EV")
        if ev_b_to_a > party_b.ev:
            raise ValueError(f"{party_b.name} has insufficient EV")
        if ev_a_to_b > 0:
            party_a.ev -= ev_a_to_b
            party_b.ev += ev_a_to_b
            events.append(contract_payment(contract_id, party_a.id, party_b.id, ev_a_to_b, state.round))
        if ev_b_to_a > 0:
            party_b.ev -= ev_b_to_a
            party_a.ev += ev_b_to_a
            events.append(contract_payment(contract_id, party_b.id, party_a.id, ev_b_to_a, state.round))

    state.contracts.append(Contract(
        id=contract_id,
        party_a_id=party_a.id,
        party_b_id=party_b.id,
        ev_from_a_to_b=ev_a_to_b,
        ev_from_b_to_a=ev_b_to_a,
        ev_is_per_round=per_round,
        duration_rounds=duration,
        rounds_remaining=duration,
        created_in_round=state.round,
    ))
    events.insert(0, contract_created(contract_id, party_a.id, party_b.id, per_round))

    bonus = settings.contracts.rep_bonus_on_create
    if bonus:
        _adjust(party_a, 0, bonus, f"Contract with {party_b.name} created", events)
        _adjust(party_b, 0, bonus, f"Contract with {party_a.name} created", events)

    return state, events


def _handle_end_contract(
    state: GameState,
    action: Action,
    settings: GameSettings,
) -> tuple[GameState, list[GameEvent]]:
    payload = action.payload
    contract = state.get_contract(payload.get("contract_id"))
    if contract is None:
        raise ValueError("Contract not found")
    if not contract.is_active:
        raise ValueError("Contract is not active")

    events: list[GameEvent] = []
    reason = payload.get("reason")

    if payload.get("is_broken"):
        breaker_id = payload.get("breaker_id") or contract.party_a_id
        if breaker_id not in (contract.party_a_id, contract.party_b_id):
            raise ValueError("Breaker must be a party to the contract")
        _close_contract(state, contract, "broken", reason, state.round, events)
        breaker = state.get_player(breaker_id)
        victim = state.get_player(contract.other_party(breaker_id))
        penalties = settings.contracts
        if breaker is not None and penalties.rep_penalty_breaker:
            _adjust(breaker, 0, -penalties.rep_penalty_breaker, "Broke contract", events)
        if victim is not None and penalties.rep_penalty_victim:
            _adjust(victim, 0, -penalties.rep_penalty_victim, "Contract broken by other party", events)
    else:
        _close_contract(state, contract, "ended", reason, state.round, events)
        _award_completion_bonus(state, contract, settings, events)

    return state, events


def _close_contract(
    state: GameState,
    contract: Contract,
    status: str,
    reason: str | None,
    round_number: int,
    events: list[GameEvent],
) -> None:
    contract.status = status
    contract.ended_in_round = round_number
    contract.reason_for_ending = reason
    events.append(contract_ended(contract.id, status, reason, round_number))


def _award_completion_bonus(
    state: GameState,
    contract: Contract,
    settings: GameSettings,
    events: list[GameEvent],
) -> None:
    bonus = settings.contracts.rep_bonus_on_completion
    if not bonus:
        return
    for party_id in (contract.party_a_id, contract.party_b_id):
        party = state.get_player(party_id)
        if party is not None:
            _adjust(party, 0, bonus, "Contract completed", events)


def replay_from_actions(
    initial_state: GameState,
    actions: list[Action],
    infra_defs: dict[str, InfrastructureDefinition],
    settings: GameSettings | None = None,
) -> tuple[GameState, list[GameEvent]]:
    """
    Replay a series of actions from an initial state.
    Version-gated actions must carry the versions the state will have when they are reached.

    Returns:
        Tuple of (final_state, all_events) after all actions applied
    """
    current_state = initial_state.copy()
    all_events: list[GameEvent] = []

    for action in actions:
        current_state, events = apply_action(current_state, action, infra_defs, settings)
        all_events.extend(events)

    return current_state, all_events
