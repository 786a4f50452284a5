"""
Utility functions for the game engine.
"""

from lunar_policy.engine import PHASE_SETUP
from lunar_policy.engine.definitions import InfrastructureDefinition
from lunar_policy.engine.state import DashboardSnapshot, GameState
from lunar_policy.engine.win_condition import evaluate_winners


def initialize_game_state(game_id: str) -> GameState:
    """
    Create an empty game in Setup, round 0, version 0.
    Players join through add_player actions.
    """
    return GameState(
        game_id=game_id,
        round=0,
        phase=PHASE_SETUP,
        version=0,
    )


def build_dashboard_snapshot(state: GameState) -> DashboardSnapshot:
    """What a polling client sees: round/phase/version/end-game fields and standings."""
    return DashboardSnapshot.from_state(state)


def print_game_state(
    state: GameState,
    infra_defs: dict[str, InfrastructureDefinition] | None = None,
    verbose: bool = False,
):
    """
    Pretty-print the current game state.

    Args:
        state: Current game state
        infra_defs: Infrastructure definitions (used for display names)
        verbose: If True, list each player's infrastructure and all contracts
    """
    print(f"\n{'='*60}")
    print(f"Round {state.round} | Phase: {state.phase} | Version: {state.version}")
    print(f"{'='*60}")

    for player in sorted(state.players, key=lambda p: p.name):
        print(f"  {player.name:<20} EV {player.ev:>5}  REP {player.rep:>4}  ({player.specialization or '-'})")
        if verbose:
            for pi in state.infrastructure_for(player.id):
                infra_def = (infra_defs or {}).get(pi.infrastructure_id)
                label = infra_def.type if infra_def else pi.infrastructure_id
                status = "active" if pi.is_active else "inactive"
                print(f"      - {label} [{status}]{' @ ' + pi.location if pi.location else ''}")

    if verbose and state.contracts:
        names = {p.id: p.name for p in state.players}
        print("\nContracts:")
        for c in state.contracts:
            print(
                f"  {names.get(c.party_a_id, c.party_a_id)} <-> {names.get(c.party_b_id, c.party_b_id)}: "
                f"{c.ev_from_a_to_b}/{c.ev_from_b_to_a} EV"
                f"{' per round' if c.ev_is_per_round else ''} [{c.status}]"
            )

    if state.ended:
        names = {p.id: p.name for p in state.players}
        winners = ", ".join(names.get(pid, pid) for pid in state.winner_player_ids)
        print(f"\n*** GAME OVER: {state.victory_type} victory - {winners} ***")
    elif state.phase != PHASE_SETUP:
        result = evaluate_winners(state.players)
        if result.ended:
            print(f"\nThreshold reached: {', '.join(p.name for p in result.winners)}")
    print()
