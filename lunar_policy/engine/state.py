"""
Game state representation.
The reducer never mutates the state it is given; it works on a deep copy.
Includes JSON serialization for persistence, and strict parsing of stored states and
dashboard snapshots.
"""

import json
from dataclasses import dataclass, field
from copy import deepcopy
from typing import Any

from lunar_policy.engine import PHASES, PHASE_SETUP, VICTORY_TYPES
from lunar_policy.engine.errors import SnapshotError


# ===== Field parsing =====
# Stored states and snapshots are loosely-typed JSON. A malformed field raises
# SnapshotError instead of being coerced, so a corrupt row never turns into a zero balance.

def _require_object(data: Any, where: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise SnapshotError(f"{where} must be an object")
    return data


def _require_int(data: dict[str, Any], key: str, where: str, minimum: int | None = None) -> int:
    value = data.get(key)
    # bool is an int subclass; a JSON true is not a count
    if isinstance(value, bool) or not isinstance(value, int):
        raise SnapshotError(f"{where}.{key} must be an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise SnapshotError(f"{where}.{key} must be >= {minimum}, got {value}")
    return value


def _optional_int(
    data: dict[str, Any], key: str, where: str, default: int | None = None, minimum: int | None = None,
) -> int | None:
    if data.get(key) is None:
        return default
    return _require_int(data, key, where, minimum)


def _require_str(data: dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise SnapshotError(f"{where}.{key} must be a non-empty string, got {value!r}")
    return value


def _optional_str(data: dict[str, Any], key: str, where: str) -> str | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise SnapshotError(f"{where}.{key} must be a string, got {value!r}")
    return value


def _optional_bool(data: dict[str, Any], key: str, where: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise SnapshotError(f"{where}.{key} must be a boolean, got {value!r}")
    return value


def _optional_list(data: dict[str, Any], key: str, where: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise SnapshotError(f"{where}.{key} must be a list")
    return value


@dataclass
class Player:
    """A player as seen by the engine. ev and rep may go negative."""
    id: str
    name: str
    ev: int
    rep: int
    specialization: str | None = None

    @property
    def score(self) -> int:
        """Combined EV + REP, used for tiebreaks and rankings."""
        return self.ev + self.rep

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ev": self.ev,
            "rep": self.rep,
            "specialization": self.specialization,
        }

    @classmethod
    def from_dict(cls, data: Any, where: str = "player") -> "Player":
        data = _require_object(data, where)
        return cls(
            id=_require_str(data, "id", where),
            name=_require_str(data, "name", where),
            ev=_require_int(data, "ev", where),
            rep=_require_int(data, "rep", where),
            specialization=_optional_str(data, "specialization", where),
        )


@dataclass
class PlayerInfrastructure:
    """A piece of infrastructure owned by a player."""
    id: str
    player_id: str  # owner
    infrastructure_id: str  # InfrastructureDefinition id
    is_active: bool = True
    is_starter: bool = False
    location: str | None = None
    built_in_round: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "player_id": self.player_id,
            "infrastructure_id": self.infrastructure_id,
            "is_active": self.is_active,
            "is_starter": self.is_starter,
            "location": self.location,
            "built_in_round": self.built_in_round,
        }

    @classmethod
    def from_dict(cls, data: Any, where: str = "infrastructure") -> "PlayerInfrastructure":
        data = _require_object(data, where)
        return cls(
            id=_require_str(data, "id", where),
            player_id=_require_str(data, "player_id", where),
            infrastructure_id=_require_str(data, "infrastructure_id", where),
            is_active=_optional_bool(data, "is_active", where, True),
            is_starter=_optional_bool(data, "is_starter", where, False),
            location=_optional_str(data, "location", where),
            built_in_round=_optional_int(data, "built_in_round", where, default=0, minimum=0),
        )


CONTRACT_STATUSES = ("active", "ended", "broken")


@dataclass
class Contract:
    """An agreement between two players. EV flows once at creation or every round-end."""
    id: str
    party_a_id: str
    party_b_id: str
    ev_from_a_to_b: int = 0
    ev_from_b_to_a: int = 0
    ev_is_per_round: bool = False
    # None = open-ended; otherwise counts down at each round-end and expires at 0
    duration_rounds: int | None = None
    rounds_remaining: int | None = None
    status: str = "active"  # "active" | "ended" | "broken"
    created_in_round: int = 0
    ended_in_round: int | None = None
    reason_for_ending: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def other_party(self, player_id: str) -> str:
        return self.party_b_id if player_id == self.party_a_id else self.party_a_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "party_a_id": self.party_a_id,
            "party_b_id": self.party_b_id,
            "ev_from_a_to_b": self.ev_from_a_to_b,
            "ev_from_b_to_a": self.ev_from_b_to_a,
            "ev_is_per_round": self.ev_is_per_round,
            "duration_rounds": self.duration_rounds,
            "rounds_remaining": self.rounds_remaining,
            "status": self.status,
            "created_in_round": self.created_in_round,
            "ended_in_round": self.ended_in_round,
            "reason_for_ending": self.reason_for_ending,
        }

    @classmethod
    def from_dict(cls, data: Any, where: str = "contract") -> "Contract":
        data = _require_object(data, where)
        status = data.get("status") or "active"
        if status not in CONTRACT_STATUSES:
            raise SnapshotError(f"{where}.status is not recognised: {status!r}")
        return cls(
            id=_require_str(data, "id", where),
            party_a_id=_require_str(data, "party_a_id", where),
            party_b_id=_require_str(data, "party_b_id", where),
            ev_from_a_to_b=_optional_int(data, "ev_from_a_to_b", where, default=0, minimum=0),
            ev_from_b_to_a=_optional_int(data, "ev_from_b_to_a", where, default=0, minimum=0),
            ev_is_per_round=_optional_bool(data, "ev_is_per_round", where, False),
            duration_rounds=_optional_int(data, "duration_rounds", where, minimum=0),
            rounds_remaining=_optional_int(data, "rounds_remaining", where, minimum=0),
            status=status,
            created_in_round=_optional_int(data, "created_in_round", where, default=0, minimum=0),
            ended_in_round=_optional_int(data, "ended_in_round", where, minimum=0),
            reason_for_ending=_optional_str(data, "reason_for_ending", where),
        )


@dataclass
class GameState:
    """Complete, authoritative game state."""
    game_id: str
    round: int
    phase: str  # "Setup", "Governance", "Operations"
    # Optimistic concurrency counter: +1 on every phase/round/end-game transition
    version: int
    players: list[Player] = field(default_factory=list)
    infrastructure: list[PlayerInfrastructure] = field(default_factory=list)
    contracts: list[Contract] = field(default_factory=list)
    # End-game fields; set once by the end_game action
    ended: bool = False
    ended_at: str | None = None
    winner_player_ids: list[str] = field(default_factory=list)
    victory_type: str | None = None  # "single" | "tiebreaker" | "cooperative"
    win_ev_threshold: int | None = None
    win_rep_threshold: int | None = None

    def copy(self) -> "GameState":
        """Return a deep copy of this game state."""
        return deepcopy(self)

    def get_player(self, player_id: str) -> Player | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def get_contract(self, contract_id: str) -> Contract | None:
        for contract in self.contracts:
            if contract.id == contract_id:
                return contract
        return None

    def infrastructure_for(self, player_id: str, active_only: bool = False) -> list[PlayerInfrastructure]:
        return [
            pi for pi in self.infrastructure
            if pi.player_id == player_id and (pi.is_active or not active_only)
        ]

    def active_contracts(self) -> list[Contract]:
        return [c for c in self.contracts if c.is_active]

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        """Convert GameState to a dictionary for JSON serialization."""
        return {
            "game_id": self.game_id,
            "round": self.round,
            "phase": self.phase,
            "version": self.version,
            "players": [p.to_dict() for p in self.players],
            "infrastructure": [pi.to_dict() for pi in self.infrastructure],
            "contracts": [c.to_dict() for c in self.contracts],
            "ended": self.ended,
            "ended_at": self.ended_at,
            "winner_player_ids": self.winner_player_ids,
            "victory_type": self.victory_type,
            "win_ev_threshold": self.win_ev_threshold,
            "win_rep_threshold": self.win_rep_threshold,
        }


    @classmethod
    def from_dict(cls, data: Any) -> "GameState":
        """
        Create GameState from a stored dictionary. Missing optional fields fall back to
        defaults; fields that are present but malformed raise SnapshotError.
        """
        data = _require_object(data, "game")
        phase = data.get("phase") or PHASE_SETUP
        if phase not in PHASES:
            raise SnapshotError(f"Unknown phase: {phase!r}")
        victory_type = data.get("victory_type")
        if victory_type is not None and victory_type not in VICTORY_TYPES:
            raise SnapshotError(f"game.victory_type is not recognised: {victory_type!r}")
        winner_ids = _optional_list(data, "winner_player_ids", "game")
        if not all(isinstance(w, str) for w in winner_ids):
            raise SnapshotError("game.winner_player_ids must be a list of strings")
        return cls(
            game_id=_optional_str(data, "game_id", "game") or "",
            round=_optional_int(data, "round", "game", default=0, minimum=0),
            phase=phase,
            version=_optional_int(data, "version", "game", default=0, minimum=0),
            players=[
                Player.from_dict(p, f"players[{i}]")
                for i, p in enumerate(_optional_list(data, "players", "game"))
            ],
            infrastructure=[
                PlayerInfrastructure.from_dict(pi, f"infrastructure[{i}]")
                for i, pi in enumerate(_optional_list(data, "infrastructure", "game"))
            ],
            contracts=[
                Contract.from_dict(c, f"contracts[{i}]")
                for i, c in enumerate(_optional_list(data, "contracts", "game"))
            ],
            ended=_optional_bool(data, "ended", "game", False),
            ended_at=_optional_str(data, "ended_at", "game"),
            winner_player_ids=list(winner_ids),
            victory_type=victory_type,
            win_ev_threshold=_optional_int(data, "win_ev_threshold", "game", minimum=0),
            win_rep_threshold=_optional_int(data, "win_rep_threshold", "game", minimum=0),
        )

    def to_json(self, indent: int = 2) -> str:
        """Serialize GameState to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "GameState":
        """Deserialize GameState from a JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise SnapshotError(f"Game state is not valid JSON: {e}") from e
        return cls.from_dict(data)

    def save(self, filepath: str) -> None:
        """Save GameState to a JSON file."""
        with open(filepath, "w") as f:
            f.write(self.to_json())

    @classmethod
    def load(cls, filepath: str) -> "GameState":
        """Load GameState from a JSON file."""
        with open(filepath, "r") as f:
            return cls.from_json(f.read())


# ===== Dashboard snapshots =====

@dataclass(frozen=True)
class SnapshotGameState:
    round: int
    phase: str
    version: int
    ended: bool = False
    victory_type: str | None = None
    winner_player_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "phase": self.phase,
            "version": self.version,
            "ended": self.ended,
            "victory_type": self.victory_type,
            "winner_player_ids": list(self.winner_player_ids),
        }


@dataclass(frozen=True)
class DashboardSnapshot:
    """What a client polls: the game's round/phase/version and the player standings."""
    game_state: SnapshotGameState
    players: tuple[Player, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_state": self.game_state.to_dict(),
            "players": [p.to_dict() for p in self.players],
        }

    @classmethod
    def from_state(cls, state: GameState) -> "DashboardSnapshot":
        return cls(
            game_state=SnapshotGameState(
                round=state.round,
                phase=state.phase,
                version=state.version,
                ended=state.ended,
                victory_type=state.victory_type,
                winner_player_ids=tuple(state.winner_player_ids),
            ),
            players=tuple(deepcopy(p) for p in state.players),
        )

    @classmethod
    def from_dict(cls, data: Any) -> "DashboardSnapshot":
        """
        Parse and validate a snapshot. Raises SnapshotError on any malformed field
        rather than guessing defaults.
        """
        if not isinstance(data, dict):
            raise SnapshotError("Snapshot must be a JSON object")

        gs = data.get("game_state")
        if not isinstance(gs, dict):
            raise SnapshotError("snapshot.game_state must be an object")
        phase = gs.get("phase")
        if phase not in PHASES:
            raise SnapshotError(f"game_state.phase must be one of {PHASES}, got {phase!r}")
        victory_type = gs.get("victory_type")
        if victory_type is not None and victory_type not in VICTORY_TYPES:
            raise SnapshotError(f"game_state.victory_type is not recognised: {victory_type!r}")
        winner_ids = _optional_list(gs, "winner_player_ids", "game_state")
        game_state = SnapshotGameState(
            round=_require_int(gs, "round", "game_state", minimum=0),
            phase=phase,
            version=_require_int(gs, "version", "game_state", minimum=0),
            ended=_optional_bool(gs, "ended", "game_state", False),
            victory_type=victory_type,
            winner_player_ids=tuple(str(w) for w in winner_ids),
        )

        raw_players = data.get("players")
        if raw_players is None:
            raw_players = []
        if not isinstance(raw_players, list):
            raise SnapshotError("snapshot.players must be a list")
        players = tuple(Player.from_dict(raw, f"players[{i}]") for i, raw in enumerate(raw_players))
        return cls(game_state=game_state, players=players)
