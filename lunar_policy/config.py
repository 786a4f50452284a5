"""
Single place for game configuration.
Win thresholds are loaded once per process; set LPG_WIN_EV_THRESHOLD / LPG_WIN_REP_THRESHOLD
to override the defaults below. A threshold of 0 means that dimension is ignored.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache

DEFAULT_WIN_EV_THRESHOLD = 250
DEFAULT_WIN_REP_THRESHOLD = 0

# Only tie mode supported: EV+REP decides, equal EV+REP at the top is a cooperative win
TIE_MODE = "tiebreaker-ev-plus-rep"

# New players join with these balances (Setup phase only)
STARTING_EV = 50
STARTING_REP = 10


@dataclass(frozen=True)
class WinSettings:
    ev_threshold: int = DEFAULT_WIN_EV_THRESHOLD
    rep_threshold: int = DEFAULT_WIN_REP_THRESHOLD


@dataclass(frozen=True)
class ContractSettings:
    """REP adjustments over a contract's lifecycle. 0 disables the adjustment (no event emitted)."""
    rep_bonus_on_create: int = 2  # both parties, when the contract is created
    rep_bonus_per_round: int = 2  # both parties, each round-end while active
    rep_bonus_on_completion: int = 5  # both parties, mutual end or natural expiry
    rep_penalty_breaker: int = 10  # party that breaks the contract
    rep_penalty_victim: int = 0  # other party when a contract is broken


@dataclass(frozen=True)
class GameSettings:
    win: WinSettings = field(default_factory=WinSettings)
    tie_mode: str = TIE_MODE
    contracts: ContractSettings = field(default_factory=ContractSettings)
    starting_ev: int = STARTING_EV
    starting_rep: int = STARTING_REP

    def to_dict(self) -> dict:
        return {
            "win": {
                "ev_threshold": self.win.ev_threshold,
                "rep_threshold": self.win.rep_threshold,
            },
            "tie_mode": self.tie_mode,
            "contracts": {
                "rep_bonus_on_create": self.contracts.rep_bonus_on_create,
                "rep_bonus_per_round": self.contracts.rep_bonus_per_round,
                "rep_bonus_on_completion": self.contracts.rep_bonus_on_completion,
                "rep_penalty_breaker": self.contracts.rep_penalty_breaker,
                "rep_penalty_victim": self.contracts.rep_penalty_victim,
            },
            "starting_ev": self.starting_ev,
            "starting_rep": self.starting_rep,
        }


def _threshold_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


def load_game_settings() -> GameSettings:
    """Build settings from defaults plus environment overrides."""
    return GameSettings(
        win=WinSettings(
            ev_threshold=_threshold_from_env("LPG_WIN_EV_THRESHOLD", DEFAULT_WIN_EV_THRESHOLD),
            rep_threshold=_threshold_from_env("LPG_WIN_REP_THRESHOLD", DEFAULT_WIN_REP_THRESHOLD),
        ),
    )


@lru_cache(maxsize=1)
def get_game_settings() -> GameSettings:
    """Process-wide settings, loaded on first use and constant afterwards."""
    return load_game_settings()
