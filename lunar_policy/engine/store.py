"""
In-process game store with compare-and-swap writes.

This is the mock backend: the API's SQL store makes the same guarantee with a conditional
UPDATE. Version-gated actions go through try_advance, which reads, applies and writes
under one lock, so two callers holding the same version cannot both succeed.
"""

import logging
import threading

from lunar_policy.config import GameSettings
from lunar_policy.engine.actions import Action
from lunar_policy.engine.definitions import InfrastructureDefinition, load_infrastructure_definitions
from lunar_policy.engine.errors import StaleVersionError
from lunar_policy.engine.events import GameEvent
from lunar_policy.engine.reducer import VERSIONED_ACTIONS, apply_action
from lunar_policy.engine.state import GameState
from lunar_policy.engine.utils import initialize_game_state

logger = logging.getLogger(__name__)


class InMemoryGameStore:
    """game_id -> GameState, guarded by a single lock. States handed out are copies."""

    def __init__(
        self,
        infra_defs: dict[str, InfrastructureDefinition] | None = None,
        settings: GameSettings | None = None,
    ):
        self._games: dict[str, GameState] = {}
        self._lock = threading.Lock()
        self.infra_defs = infra_defs if infra_defs is not None else load_infrastructure_definitions()
        self.settings = settings

    def create(self, game_id: str) -> GameState:
        with self._lock:
            if game_id in self._games:
                raise ValueError(f"Game {game_id} already exists")
            state = initialize_game_state(game_id)
            self._games[game_id] = state
            logger.info("Created game %s", game_id)
            return state.copy()

    def get(self, game_id: str) -> GameState:
        with self._lock:
            state = self._games.get(game_id)
            if state is None:
                raise KeyError(game_id)
            return state.copy()

    def list_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._games.keys())

    def delete(self, game_id: str) -> bool:
        with self._lock:
            return self._games.pop(game_id, None) is not None

    def compare_and_swap(self, game_id: str, expected_version: int, new_state: GameState) -> GameState:
        """
        Store new_state only if the stored version still equals expected_version.
        Raises StaleVersionError otherwise; the stored state is left untouched.
        """
        with self._lock:
            return self._swap_locked(game_id, expected_version, new_state)

    def try_advance(self, game_id: str, action: Action) -> tuple[GameState, list[GameEvent]]:
        """
        Apply a version-gated action atomically.

        Returns:
            (new_state, events). For a no-op end_game the stored state is returned unchanged.

        Raises:
            ValueError: the action type is not version-gated; those go through apply().
        """
        if action.type not in VERSIONED_ACTIONS:
            raise ValueError(f"{action.type} is not version-gated; use apply()")
        with self._lock:
            current = self._require_locked(game_id)
            new_state, events = apply_action(current, action, self.infra_defs, self.settings)
            if new_state.version == current.version:
                return current.copy(), events
            return self._swap_locked(game_id, current.version, new_state), events

    def apply(self, game_id: str, action: Action) -> tuple[GameState, list[GameEvent]]:
        """Apply any action (gated or not) and store the result."""
        with self._lock:
            current = self._require_locked(game_id)
            new_state, events = apply_action(current, action, self.infra_defs, self.settings)
            self._games[game_id] = new_state
            return new_state.copy(), events

    def _require_locked(self, game_id: str) -> GameState:
        state = self._games.get(game_id)
        if state is None:
            raise KeyError(game_id)
        return state

    def _swap_locked(self, game_id: str, expected_version: int, new_state: GameState) -> GameState:
        current = self._require_locked(game_id)
        if current.version != expected_version:
            raise StaleVersionError(expected_version, current.version)
        self._games[game_id] = new_state.copy()
        return new_state.copy()
