#!/usr/bin/env python3
"""
Reset a stored game back to Setup, round 0, keeping its players with fresh balances.
Usage: python scripts/reset_game.py <game_id> [--wipe-players]
From repo root with the package installed (pip install -e .).
"""
import sys

from sqlalchemy.orm import Session

from lunar_policy.api.database import session_scope
from lunar_policy.api.main import save_game
from lunar_policy.api.models import Game
from lunar_policy.config import get_game_settings
from lunar_policy.engine.definitions import get_starter_definition, load_infrastructure_definitions
from lunar_policy.engine.errors import StaleVersionError
from lunar_policy.engine.state import GameState, PlayerInfrastructure
from lunar_policy.engine.utils import initialize_game_state


def reset_state(state: GameState, wipe_players: bool = False) -> GameState:
    """
    Fresh Setup state for the same game id. The version keeps counting up so any
    dashboard still open on the old game gets a stale-version rejection.
    """
    settings = get_game_settings()
    fresh = initialize_game_state(state.game_id)
    fresh.version = state.version + 1
    if wipe_players:
        return fresh

    infra_defs = load_infrastructure_definitions()
    for player in state.players:
        player.ev = settings.starting_ev
        player.rep = settings.starting_rep
        fresh.players.append(player)
        starter = get_starter_definition(infra_defs, player.specialization)
        if starter is not None:
            fresh.infrastructure.append(PlayerInfrastructure(
                id=f"{player.id}-{starter.id}",
                player_id=player.id,
                infrastructure_id=starter.id,
                is_starter=True,
            ))
    return fresh


def reset_game(db: Session, game_id: str, wipe_players: bool = False) -> GameState | None:
    """
    Reset one stored game; None if there is no such game.
    The write is conditional on the version that was read, so a facilitator action that
    lands in between raises StaleVersionError instead of being overwritten.
    """
    row = db.query(Game).filter(Game.id == game_id).first()
    if not row:
        return None
    loaded_version = row.version
    state = reset_state(GameState.from_json(row.game_state), wipe_players)
    save_game(game_id, loaded_version, state, db)
    return state


def main() -> None:
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if not args:
        print("Usage: python scripts/reset_game.py <game_id> [--wipe-players]", file=sys.stderr)
        sys.exit(1)
    game_id = args[0].strip()
    wipe_players = "--wipe-players" in sys.argv

    try:
        with session_scope() as db:
            state = reset_game(db, game_id, wipe_players)
    except StaleVersionError as e:
        print(f"Game {game_id} changed while resetting ({e}); nothing was written. Try again.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if state is None:
        print(f"No game found with id: {game_id!r}")
        return
    print(f"Reset game {game_id} to Setup at version {state.version}.")


if __name__ == "__main__":
    main()
