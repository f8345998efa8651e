import uuid
from dataclasses import fields, replace
from typing import Any, Dict, List, Optional

from damage_review.core.utils.logger import get_logger
from damage_review.domain.entities.damage_entity import Damage, DamageImage, DamageStatus, utcnow
from damage_review.domain.entities.review_entity import DamageReviewSession, ReviewSectionStatus
from damage_review.domain.errors import NotFound
from damage_review.domain.repositories.damage_store import DamageStore

_logger = get_logger("in_memory_store")

_DAMAGE_FIELDS = {f.name for f in fields(Damage)} - {"id", "created_at"}


def _matches(item: Any, report_id: str, section_id: Optional[str], part_name: Optional[str]) -> bool:
    if item.report_id != report_id:
        return False
    if section_id is not None and item.section_id != section_id:
        return False
    if part_name is not None and item.part_name != part_name:
        return False
    return True


class InMemoryDamageStore(DamageStore):
    """Process-local store. Last write wins; no cross-session locking."""

    def __init__(self) -> None:
        self._images: Dict[str, DamageImage] = {}
        self._damages: Dict[str, Damage] = {}
        self._sessions: Dict[str, DamageReviewSession] = {}
        self.reviewed_reports: Dict[str, Dict[str, Any]] = {}

    # Seeding helpers (synchronous, used by loaders and tests)
    def add_image(self, image: DamageImage) -> DamageImage:
        self._images[image.id] = image
        return image

    def add_damage(self, damage: Damage) -> Damage:
        self._damages[damage.id] = damage
        return damage

    async def get_images(
        self, report_id: str, section_id: Optional[str] = None, part_name: Optional[str] = None
    ) -> List[DamageImage]:
        images = [i for i in self._images.values() if _matches(i, report_id, section_id, part_name)]
        return sorted(images, key=lambda i: i.order_index)

    async def get_damages(
        self, report_id: str, section_id: Optional[str] = None, part_name: Optional[str] = None
    ) -> List[Damage]:
        damages = [d for d in self._damages.values() if _matches(d, report_id, section_id, part_name)]
        if part_name is not None:
            # most severe first within a part; drives render and arrow-key order
            damages.sort(key=lambda d: d.severity, reverse=True)
        return damages

    async def get_damage(self, damage_id: str) -> Damage:
        try:
            return self._damages[damage_id]
        except KeyError:
            raise NotFound(f"Damage not found: {damage_id}") from None

    async def get_damages_by_group(self, damage_group_id: str) -> List[Damage]:
        return [d for d in self._damages.values() if d.damage_group_id == damage_group_id]

    async def create_damage(self, damage: Damage) -> Damage:
        if damage.image_id not in self._images:
            raise NotFound(f"Image not found: {damage.image_id}")
        now = utcnow()
        stored = replace(damage, id=damage.id or str(uuid.uuid4()), created_at=now, updated_at=now)
        self._damages[stored.id] = stored
        _logger.debug("Damage created: %s (group=%s)", stored.id, stored.damage_group_id)
        return stored

    async def update_damage(self, damage_id: str, patch: Dict[str, Any]) -> Damage:
        current = await self.get_damage(damage_id)
        updated = self._apply(current, patch)
        self._damages[damage_id] = updated
        return updated

    async def update_damages_by_scope(
        self,
        report_id: str,
        section_id: str,
        part_name: str,
        patch: Dict[str, Any],
        only_status: Optional[DamageStatus] = None,
    ) -> List[Damage]:
        updated: List[Damage] = []
        for damage in list(self._damages.values()):
            if not _matches(damage, report_id, section_id, part_name):
                continue
            if only_status is not None and damage.status != only_status:
                continue
            new_damage = self._apply(damage, patch)
            self._damages[damage.id] = new_damage
            updated.append(new_damage)
        return updated

    async def delete_damage(self, damage_id: str) -> None:
        if self._damages.pop(damage_id, None) is None:
            raise NotFound(f"Damage not found: {damage_id}")

    async def get_review_sessions(self, report_id: str) -> List[DamageReviewSession]:
        return [s for s in self._sessions.values() if s.report_id == report_id]

    async def get_or_create_review_session(
        self, report_id: str, section_id: str, reviewer_id: str
    ) -> DamageReviewSession:
        for session in self._sessions.values():
            if (session.report_id, session.section_id, session.reviewer_id) == (report_id, section_id, reviewer_id):
                return session
        session = DamageReviewSession(
            id=str(uuid.uuid4()),
            report_id=report_id,
            reviewer_id=reviewer_id,
            section_id=section_id,
            section_status=ReviewSectionStatus.IN_PROGRESS,
            started_at=utcnow(),
        )
        self._sessions[session.id] = session
        return session

    async def update_review_session(self, session_id: str, patch: Dict[str, Any]) -> DamageReviewSession:
        try:
            session = self._sessions[session_id]
        except KeyError:
            raise NotFound(f"Review session not found: {session_id}") from None
        updated = replace(session, **patch)
        self._sessions[session_id] = updated
        return updated

    async def mark_report_reviewed(self, report_id: str, reviewer_id: str) -> None:
        self.reviewed_reports[report_id] = {
            "manual_review_completed": True,
            "manual_review_completed_at": utcnow(),
            "manual_review_completed_by": reviewer_id,
        }

    @staticmethod
    def _apply(damage: Damage, patch: Dict[str, Any]) -> Damage:
        unknown = set(patch) - _DAMAGE_FIELDS
        if unknown:
            raise ValueError(f"Unknown damage fields: {sorted(unknown)}")
        stamped: Dict[str, Any] = dict(patch)
        stamped["updated_at"] = utcnow()
        return damage.apply(stamped)
