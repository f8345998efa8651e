from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from damage_review.domain.entities.damage_entity import Damage, SEVERITY_LABELS


class VehicleLocation(str, Enum):
    FRONT = "front"
    REAR = "rear"
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    CENTER = "center"


# Display order of the recap's location groups
LOCATION_ORDER: Tuple[VehicleLocation, ...] = (
    VehicleLocation.FRONT,
    VehicleLocation.LEFT,
    VehicleLocation.RIGHT,
    VehicleLocation.REAR,
    VehicleLocation.TOP,
    VehicleLocation.CENTER,
)

LOCATION_LABELS: Dict[VehicleLocation, str] = {
    VehicleLocation.FRONT: "Front",
    VehicleLocation.REAR: "Rear",
    VehicleLocation.LEFT: "Left Side",
    VehicleLocation.RIGHT: "Right Side",
    VehicleLocation.TOP: "Top",
    VehicleLocation.CENTER: "Center",
}

# Diagram palette (differs from the canvas palette at severity 2 and 0)
DIAGRAM_COLORS: Dict[int, str] = {
    1: "#10B981",
    2: "#84CC16",
    3: "#FBBF24",
    4: "#F97316",
    5: "#EF4444",
}
NO_DAMAGE_COLOR = "#E5E7EB"

SEVERE_THRESHOLD = 4


def diagram_color(severity: int) -> str:
    return DIAGRAM_COLORS.get(severity, NO_DAMAGE_COLOR)


@dataclass(frozen=True)
class SeverityLegendEntry:
    severity: int
    label: str
    color: str


def severity_legend() -> List[SeverityLegendEntry]:
    return [SeverityLegendEntry(s, SEVERITY_LABELS[s], DIAGRAM_COLORS[s]) for s in sorted(DIAGRAM_COLORS)]


@dataclass(frozen=True)
class PartDamageInfo:
    name: str
    location: VehicleLocation
    max_severity: int
    damage_count: int
    damages: Tuple[Damage, ...]

    @property
    def color(self) -> str:
        return diagram_color(self.max_severity)


@dataclass(frozen=True)
class DamageRecap:
    report_id: str
    parts: Tuple[PartDamageInfo, ...]
    by_location: Dict[VehicleLocation, Tuple[PartDamageInfo, ...]]
    total_damages: int
    affected_parts: int
    severe_damages: int
