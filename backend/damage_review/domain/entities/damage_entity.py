from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from damage_review.domain.entities.bbox_entity import BoundingBox
from damage_review.domain.errors import InvalidSeverity, InvalidStatus


class DamageStatus(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    NON_BILLABLE = "non_billable"
    FALSE_POSITIVE = "false_positive"


# Space-bar cycle. Pending damages enter the cycle at "validated".
NEXT_STATUS: Dict[DamageStatus, DamageStatus] = {
    DamageStatus.PENDING: DamageStatus.VALIDATED,
    DamageStatus.VALIDATED: DamageStatus.NON_BILLABLE,
    DamageStatus.NON_BILLABLE: DamageStatus.FALSE_POSITIVE,
    DamageStatus.FALSE_POSITIVE: DamageStatus.VALIDATED,
}

STATUS_LABELS: Dict[DamageStatus, str] = {
    DamageStatus.PENDING: "Pending Review",
    DamageStatus.VALIDATED: "Actual Damage",
    DamageStatus.NON_BILLABLE: "Non-Billable",
    DamageStatus.FALSE_POSITIVE: "False Positive",
}

STATUS_BORDER_COLORS: Dict[DamageStatus, str] = {
    DamageStatus.PENDING: "#FBBF24",
    DamageStatus.VALIDATED: "#10B981",
    DamageStatus.NON_BILLABLE: "#3B82F6",
    DamageStatus.FALSE_POSITIVE: "#6B7280",
}

MIN_SEVERITY = 0
MAX_SEVERITY = 5

SEVERITY_LABELS: Dict[int, str] = {
    0: "No Damage",
    1: "Very Minor",
    2: "Minor",
    3: "Moderate",
    4: "Significant",
    5: "Severe",
}

# Box colors on the annotation canvas
SEVERITY_COLORS: Dict[int, str] = {
    0: "#000000",
    1: "#10B981",
    2: "#10B981",
    3: "#FBBF24",
    4: "#F97316",
    5: "#EF4444",
}
UNKNOWN_COLOR = "#6B7280"


def parse_status(value: Any) -> DamageStatus:
    if isinstance(value, DamageStatus):
        return value
    try:
        return DamageStatus(str(value))
    except ValueError:
        raise InvalidStatus(f"Unknown damage status: {value!r}") from None


def parse_severity(value: Any) -> int:
    try:
        severity = int(value)
    except (TypeError, ValueError):
        raise InvalidSeverity(f"Severity must be an integer, got {value!r}") from None
    if not MIN_SEVERITY <= severity <= MAX_SEVERITY:
        raise InvalidSeverity(f"Severity must be within {MIN_SEVERITY}..{MAX_SEVERITY}, got {severity}")
    return severity


def severity_label(severity: int) -> str:
    return SEVERITY_LABELS.get(severity, "Unknown")


def severity_color(severity: int) -> str:
    return SEVERITY_COLORS.get(severity, UNKNOWN_COLOR)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DamageImage:
    """One photograph of a report part.

    width/height stay None until the raster is loaded.
    """
    id: str
    report_id: str
    section_id: str
    part_name: str
    image_url: str
    order_index: int = 0
    image_type: str = "damage"
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(frozen=True)
class Damage:
    id: str
    report_id: str
    image_id: str
    damage_group_id: str
    section_id: str
    part_name: str
    bounding_box: BoundingBox
    location: str = ""
    damage_type: str = ""
    severity: int = 0
    status: DamageStatus = DamageStatus.PENDING
    confidence_score: float = 0.0
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    notes: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_reviewed(self) -> bool:
        return self.status != DamageStatus.PENDING

    def apply(self, patch: Dict[str, Any]) -> "Damage":
        return replace(self, **patch)


@dataclass(frozen=True)
class DamageDraft:
    """Damage fields supplied by a reviewer before the store assigns an id."""
    report_id: str
    image_id: str
    section_id: str
    part_name: str
    bounding_box: BoundingBox
    location: str = ""
    damage_type: str = ""
    severity: int = 3
    status: DamageStatus = DamageStatus.VALIDATED
    damage_group_id: Optional[str] = None
    notes: str = ""
