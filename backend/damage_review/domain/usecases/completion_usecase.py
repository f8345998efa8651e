from typing import Dict, Iterable, List, Sequence, Tuple

from damage_review.domain.entities.damage_entity import Damage, DamageImage, DamageStatus
from damage_review.domain.entities.review_entity import (
    DamageReviewSession,
    PartReviewInfo,
    ReviewSectionStatus,
    SectionReviewInfo,
)
from damage_review.domain.entities.vehicle_catalog import ordered_section_ids, section_name
from damage_review.domain.repositories.damage_store import DamageStore


def _reviewed_count(damages: Iterable[Damage]) -> int:
    return sum(1 for d in damages if d.status != DamageStatus.PENDING)


def section_status_from(sessions: Iterable[DamageReviewSession], section_id: str) -> ReviewSectionStatus:
    statuses = {s.section_status for s in sessions if s.section_id == section_id}
    if ReviewSectionStatus.COMPLETED in statuses:
        return ReviewSectionStatus.COMPLETED
    if ReviewSectionStatus.IN_PROGRESS in statuses:
        return ReviewSectionStatus.IN_PROGRESS
    return ReviewSectionStatus.NOT_STARTED


class CompletionAggregator:
    """Rolls per-damage status up to part, section and report completion.

    The compute_* helpers are pure; load_sections/report_complete read the
    store and must be called only after a mutation has been acknowledged.
    """

    def __init__(self, store: DamageStore) -> None:
        self._store = store

    @staticmethod
    def compute_part_info(
        part_name: str,
        section_id: str,
        damages: Sequence[Damage],
        images: Sequence[DamageImage] = (),
    ) -> PartReviewInfo:
        total = len(damages)
        reviewed = _reviewed_count(damages)
        return PartReviewInfo(
            part_name=part_name,
            section_id=section_id,
            total_damages=total,
            reviewed_damages=reviewed,
            images=tuple(images),
            damages=tuple(damages),
            is_complete=total > 0 and reviewed == total,
        )

    @staticmethod
    def compute_section_info(
        section_id: str,
        parts: Sequence[PartReviewInfo],
        status: ReviewSectionStatus = ReviewSectionStatus.NOT_STARTED,
    ) -> SectionReviewInfo:
        total = sum(p.total_damages for p in parts)
        reviewed = sum(p.reviewed_damages for p in parts)
        return SectionReviewInfo(
            section_id=section_id,
            section_name=section_name(section_id),
            parts=tuple(parts),
            total_parts=len(parts),
            reviewed_parts=sum(1 for p in parts if p.is_complete),
            total_damages=total,
            reviewed_damages=reviewed,
            status=status,
            is_complete=total > 0 and reviewed == total,
        )

    @staticmethod
    def is_report_complete(all_damages: Sequence[Damage]) -> bool:
        return len(all_damages) > 0 and all(d.status != DamageStatus.PENDING for d in all_damages)

    @classmethod
    def build_sections(
        cls,
        images: Sequence[DamageImage],
        damages: Sequence[Damage],
        sessions: Sequence[DamageReviewSession] = (),
    ) -> Tuple[SectionReviewInfo, ...]:
        """Reviewer worklist: sections and parts that hold at least one damage."""
        parts_by_section: Dict[str, List[str]] = {}
        for damage in damages:
            part_names = parts_by_section.setdefault(damage.section_id, [])
            if damage.part_name not in part_names:
                part_names.append(damage.part_name)

        sections: List[SectionReviewInfo] = []
        for section_id in ordered_section_ids(parts_by_section):
            parts = [
                cls.compute_part_info(
                    part_name,
                    section_id,
                    [d for d in damages if d.section_id == section_id and d.part_name == part_name],
                    [i for i in images if i.section_id == section_id and i.part_name == part_name],
                )
                for part_name in parts_by_section[section_id]
            ]
            sections.append(cls.compute_section_info(section_id, parts, section_status_from(sessions, section_id)))
        return tuple(sections)

    async def load_sections(self, report_id: str) -> Tuple[SectionReviewInfo, ...]:
        images = await self._store.get_images(report_id)
        damages = await self._store.get_damages(report_id)
        sessions = await self._store.get_review_sessions(report_id)
        return self.build_sections(images, damages, sessions)

    async def load_part_info(self, report_id: str, section_id: str, part_name: str) -> PartReviewInfo:
        images = await self._store.get_images(report_id, section_id, part_name)
        damages = await self._store.get_damages(report_id, section_id, part_name)
        return self.compute_part_info(part_name, section_id, damages, images)

    async def report_complete(self, report_id: str) -> bool:
        return self.is_report_complete(await self._store.get_damages(report_id))
