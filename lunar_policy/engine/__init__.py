"""
Lunar Policy Gaming engine.
Deterministic state, actions, reducer and victory evaluation; no web framework or database.
"""

PHASE_SETUP = "Setup"
PHASE_GOVERNANCE = "Governance"
PHASE_OPERATIONS = "Operations"
PHASES = (PHASE_SETUP, PHASE_GOVERNANCE, PHASE_OPERATIONS)

SPECIALIZATIONS = (
    "Resource Extractor",
    "Infrastructure Provider",
    "Operations Manager",
)

# Victory types stored on an ended game. None means no winner (yet).
VICTORY_SINGLE = "single"
VICTORY_TIEBREAKER = "tiebreaker"
VICTORY_COOPERATIVE = "cooperative"
VICTORY_TYPES = (VICTORY_SINGLE, VICTORY_TIEBREAKER, VICTORY_COOPERATIVE)
