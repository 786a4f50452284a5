"""
Main entry point for the Lunar Policy Gaming engine.
Demonstrates core functionality with a short scripted game.
"""

from lunar_policy.config import GameSettings, WinSettings
from lunar_policy.logging_config import setup_logging
from lunar_policy.engine.definitions import load_infrastructure_definitions
from lunar_policy.engine.actions import (
    add_player,
    advance_phase,
    advance_round,
    build_infrastructure,
    create_contract,
    end_game,
    manual_adjustment,
)
from lunar_policy.engine.errors import StaleVersionError
from lunar_policy.engine.queries import get_leaderboard
from lunar_policy.engine.store import InMemoryGameStore
from lunar_policy.engine.utils import print_game_state


def main():
    print("Lunar Policy Gaming - engine demo")
    print("=" * 60)
    setup_logging("WARNING")

    infra_defs = load_infrastructure_definitions()
    # Low threshold so the demo reaches a result in a few rounds
    settings = GameSettings(win=WinSettings(ev_threshold=60, rep_threshold=0))
    store = InMemoryGameStore(infra_defs, settings)
    state = store.create("demo")

    # Setup: three players join, one per specialization
    for name, specialization in [
        ("Aldrin Mining", "Resource Extractor"),
        ("Tranquility Power", "Infrastructure Provider"),
        ("Shackleton Ops", "Operations Manager"),
    ]:
        state, _ = store.apply("demo", add_player(name, specialization, player_id=name.split()[0].lower()))
    print_game_state(state, infra_defs, verbose=True)

    # Round 1: Governance
    state, _ = store.try_advance("demo", advance_phase(state.version))
    state, events = store.apply("demo", build_infrastructure("tranquility", "aldrin", "Solar Array", "Sea of Tranquility"))
    print(f"Built: {events[0].payload}")
    state, events = store.apply("demo", create_contract("aldrin", "shackleton", ev_from_a_to_b=3, ev_is_per_round=True, duration_rounds=2))
    print(f"Contract created: {events[0].payload['contract_id']}")

    # A second dashboard still holding the old version is turned away
    try:
        store.try_advance("demo", advance_phase(state.version - 1))
    except StaleVersionError as e:
        print(f"Rejected: {e}")

    # Three full rounds: Operations, then settlement
    for _ in range(3):
        state, _ = store.try_advance("demo", advance_phase(state.version))
        state, events = store.try_advance("demo", advance_round(state.version))
        print(f"Round settled with {len(events)} events")
        print_game_state(state, infra_defs)

    state, _ = store.apply("demo", manual_adjustment("shackleton", 20, 0, "Crisis response award"))

    state, events = store.try_advance("demo", end_game(state.version))
    for event in events:
        print(f"Event: {event.type} {event.payload}")

    print("Leaderboard:")
    for row in get_leaderboard(state.players):
        print(f"  {row['rank']}. {row['name']} ({row['score']})")
    print_game_state(state, infra_defs)


if __name__ == "__main__":
    main()
