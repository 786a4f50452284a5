"""
Static infrastructure definitions.
Data lives in data/infrastructure.json (id -> fields). Definitions are keyed by id;
use get_definition_by_type to look one up by its display type ("Solar Array").
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

DATA_DIR = Path(__file__).parent.parent / "data"
INFRASTRUCTURE_FILE = "infrastructure.json"


@dataclass
class InfrastructureDefinition:
    """Defines immutable properties of an infrastructure type."""
    id: str
    type: str  # display name, e.g. "Solar Array"
    cost: int  # EV paid by the builder
    maintenance_cost: int  # EV charged to the owner each round-end (non-starter, active only)
    capacity: Optional[int] = None  # power (solar) or crew (habitat) provided
    yield_: Optional[int] = None  # EV credited to the owner each round-end while active
    power_requirement: Optional[int] = None
    crew_requirement: Optional[int] = None
    can_be_operated_by: list[str] = field(default_factory=list)  # specializations allowed to build it
    player_buildable: bool = True
    is_starter: bool = False
    starter_for: Optional[str] = None  # specialization that receives this at join

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "cost": self.cost,
            "maintenance_cost": self.maintenance_cost,
            "capacity": self.capacity,
            "yield": self.yield_,
            "power_requirement": self.power_requirement,
            "crew_requirement": self.crew_requirement,
            "can_be_operated_by": list(self.can_be_operated_by),
            "player_buildable": self.player_buildable,
            "is_starter": self.is_starter,
            "starter_for": self.starter_for,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InfrastructureDefinition":
        return cls(
            id=data["id"],
            type=data["type"],
            cost=int(data.get("cost", 0)),
            maintenance_cost=int(data.get("maintenance_cost", 0)),
            capacity=data.get("capacity"),
            yield_=data.get("yield"),
            power_requirement=data.get("power_requirement"),
            crew_requirement=data.get("crew_requirement"),
            can_be_operated_by=list(data.get("can_be_operated_by", [])),
            player_buildable=data.get("player_buildable", True),
            is_starter=data.get("is_starter", False),
            starter_for=data.get("starter_for"),
        )


def load_infrastructure_definitions(
    data_dir: Path | str | None = None,
) -> dict[str, InfrastructureDefinition]:
    """
    Load infrastructure definitions.

    Args:
        data_dir: Directory containing infrastructure.json. Defaults to the packaged data dir.

    Returns: infrastructure_id -> InfrastructureDefinition
    """
    data_dir = Path(data_dir) if data_dir is not None else DATA_DIR
    with open(data_dir / INFRASTRUCTURE_FILE, "r") as f:
        raw = json.load(f)

    return {
        infra_id: InfrastructureDefinition.from_dict(data)
        for infra_id, data in raw.items()
    }


def get_definition_by_type(
    infra_defs: dict[str, InfrastructureDefinition],
    infrastructure_type: str,
) -> InfrastructureDefinition | None:
    for infra_def in infra_defs.values():
        if infra_def.type == infrastructure_type:
            return infra_def
    return None


def get_starter_definition(
    infra_defs: dict[str, InfrastructureDefinition],
    specialization: str,
) -> InfrastructureDefinition | None:
    """Starter infrastructure handed to a new player of this specialization."""
    for infra_def in infra_defs.values():
        if infra_def.is_starter and infra_def.starter_for == specialization:
            return infra_def
    return None
