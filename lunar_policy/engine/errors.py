"""
Engine exceptions.

StaleVersionError is the one expected concurrency failure: the caller's known version
no longer matches the stored one. Callers refetch and retry instead of forcing the write.
"""


class LunarPolicyError(Exception):
    """Base exception for the engine."""
    pass


class StaleVersionError(LunarPolicyError):
    """Raised when a version-gated action carries an out-of-date version. Nothing was mutated."""

    def __init__(self, expected_version: int | None, current_version: int):
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Version mismatch - another update occurred "
            f"(expected {expected_version}, current {current_version})"
        )

    def to_dict(self) -> dict:
        return {
            "detail": str(self),
            "expected_version": self.expected_version,
            "current_version": self.current_version,
        }


class SnapshotError(LunarPolicyError, ValueError):
    """Raised when a dashboard snapshot or stored state does not have the expected shape."""
    pass


class GameOverError(LunarPolicyError, ValueError):
    """Raised when a mutating action targets a game that has already ended."""

    def __init__(self, victory_type: str | None, winner_ids: list[str]):
        self.victory_type = victory_type
        self.winner_ids = list(winner_ids)
        super().__init__(
            f"Game is over ({victory_type or 'no'} victory). No further actions are allowed."
        )
