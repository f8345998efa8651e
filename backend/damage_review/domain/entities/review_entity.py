from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from damage_review.domain.entities.damage_entity import Damage, DamageDraft, DamageImage


class ReviewSectionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class DamageReviewSession:
    """Persisted marker of a reviewer's progress on one section."""
    id: str
    report_id: str
    reviewer_id: str
    section_id: str
    section_status: ReviewSectionStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    comments: str = ""


@dataclass(frozen=True)
class PartReviewInfo:
    part_name: str
    section_id: str
    total_damages: int
    reviewed_damages: int
    images: Tuple[DamageImage, ...]
    damages: Tuple[Damage, ...]
    is_complete: bool


@dataclass(frozen=True)
class SectionReviewInfo:
    section_id: str
    section_name: str
    parts: Tuple[PartReviewInfo, ...]
    total_parts: int
    reviewed_parts: int
    total_damages: int
    reviewed_damages: int
    status: ReviewSectionStatus
    is_complete: bool

    def part(self, part_name: str) -> Optional[PartReviewInfo]:
        for info in self.parts:
            if info.part_name == part_name:
                return info
        return None

    @property
    def part_names(self) -> List[str]:
        return [p.part_name for p in self.parts]


@dataclass(frozen=True)
class ReviewSession:
    """Reviewer position and UI flags for one report.

    Immutable: every navigator/workflow operation returns a new value, so the
    previous one stays valid when a store call fails.
    """
    report_id: str
    reviewer_id: str
    sections: Tuple[SectionReviewInfo, ...] = ()
    current_section_id: Optional[str] = None
    current_part_name: Optional[str] = None
    current_image_index: int = 0
    selected_damage_id: Optional[str] = None
    images: Tuple[DamageImage, ...] = ()
    damages: Tuple[Damage, ...] = ()
    expanded_sections: FrozenSet[str] = field(default_factory=frozenset)
    is_drawing_mode: bool = False
    is_editing: bool = False
    draft: Optional[DamageDraft] = None
    # Set when loading a part failed; failed_scope is (section_id, part_name)
    load_error: Optional[str] = None
    failed_scope: Optional[Tuple[str, str]] = None
    pending_confirmation: Optional[str] = None
    report_complete: bool = False

    @property
    def current_image(self) -> Optional[DamageImage]:
        if 0 <= self.current_image_index < len(self.images):
            return self.images[self.current_image_index]
        return None

    @property
    def current_image_damages(self) -> List[Damage]:
        image = self.current_image
        if image is None:
            return []
        return [d for d in self.damages if d.image_id == image.id]

    @property
    def selected_damage(self) -> Optional[Damage]:
        if self.selected_damage_id is None:
            return None
        for damage in self.damages:
            if damage.id == self.selected_damage_id:
                return damage
        return None

    def section(self, section_id: Optional[str]) -> Optional[SectionReviewInfo]:
        for info in self.sections:
            if info.section_id == section_id:
                return info
        return None
