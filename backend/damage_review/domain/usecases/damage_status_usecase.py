import uuid
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from damage_review.domain.entities.bbox_entity import MIN_BOX_SIZE, BoundingBox
from damage_review.domain.entities.damage_entity import (
    NEXT_STATUS,
    Damage,
    DamageDraft,
    DamageStatus,
    parse_severity,
    parse_status,
    utcnow,
)
from damage_review.domain.errors import ConfirmationRequired, InvalidBoundingBox, InvalidStatus, NotFound
from damage_review.domain.repositories.damage_store import DamageStore


REVIEWED_STATUSES: FrozenSet[DamageStatus] = frozenset(
    {DamageStatus.VALIDATED, DamageStatus.NON_BILLABLE, DamageStatus.FALSE_POSITIVE}
)

# Reviewers may revisit any classification, but nothing goes back to pending.
ALLOWED_TRANSITIONS: Dict[DamageStatus, FrozenSet[DamageStatus]] = {
    DamageStatus.PENDING: REVIEWED_STATUSES,
    DamageStatus.VALIDATED: REVIEWED_STATUSES,
    DamageStatus.NON_BILLABLE: REVIEWED_STATUSES,
    DamageStatus.FALSE_POSITIVE: REVIEWED_STATUSES,
}

# Fields a reviewer can edit from the damage form
EDITABLE_FIELDS = frozenset(
    {"location", "damage_type", "severity", "status", "notes", "part_name", "section_id", "bounding_box"}
)

# Manual annotations are fully trusted
MANUAL_CONFIDENCE = 1.0


def next_status(status: DamageStatus) -> DamageStatus:
    return NEXT_STATUS[status]


class DamageStatusMachine:
    """Validates and applies damage classifications.

    Every write stamps reviewed_by/reviewed_at. Errors are caller errors and
    are never retried here.
    """

    def __init__(
        self,
        store: DamageStore,
        min_box_size: float = MIN_BOX_SIZE,
        clock: Callable[[], Any] = utcnow,
    ) -> None:
        self._store = store
        self._min_box_size = min_box_size
        self._clock = clock

    def _stamp(self, reviewer_id: str) -> Dict[str, Any]:
        return {"reviewed_by": reviewer_id, "reviewed_at": self._clock()}

    @staticmethod
    def check_transition(current: DamageStatus, target: Any) -> DamageStatus:
        status = parse_status(target)
        if status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidStatus(f"Cannot move a damage from {current.value} to {status.value}")
        return status

    async def set_status(
        self, damage_id: str, status: Any, reviewer_id: str, notes: Optional[str] = None
    ) -> Damage:
        current = await self._store.get_damage(damage_id)
        target = self.check_transition(current.status, status)
        patch = {"status": target, **self._stamp(reviewer_id)}
        if notes is not None:
            patch["notes"] = notes
        return await self._store.update_damage(damage_id, patch)

    async def set_group_status(self, damage_group_id: str, status: Any, reviewer_id: str) -> List[Damage]:
        """Apply one classification to every detection of the same physical defect."""
        members = await self._store.get_damages_by_group(damage_group_id)
        if not members:
            raise NotFound(f"Damage group not found: {damage_group_id}")
        updated: List[Damage] = []
        for damage in members:
            target = self.check_transition(damage.status, status)
            updated.append(
                await self._store.update_damage(damage.id, {"status": target, **self._stamp(reviewer_id)})
            )
        return updated

    async def validate_part(self, report_id: str, section_id: str, part_name: str, reviewer_id: str) -> List[Damage]:
        """Validate the pending damages of a part; prior classifications are kept."""
        return await self._store.update_damages_by_scope(
            report_id,
            section_id,
            part_name,
            {"status": DamageStatus.VALIDATED, **self._stamp(reviewer_id)},
            only_status=DamageStatus.PENDING,
        )

    async def dismiss_part(
        self, report_id: str, section_id: str, part_name: str, reviewer_id: str, confirmed: bool = False
    ) -> List[Damage]:
        """Mark every damage of a part as false positive, overriding prior decisions."""
        if not confirmed:
            raise ConfirmationRequired("dismiss_part")
        return await self._store.update_damages_by_scope(
            report_id,
            section_id,
            part_name,
            {"status": DamageStatus.FALSE_POSITIVE, **self._stamp(reviewer_id)},
        )

    async def create_damage(self, draft: DamageDraft, reviewer_id: str) -> Damage:
        draft.bounding_box.validate(self._min_box_size)
        status = parse_status(draft.status)
        if status == DamageStatus.PENDING:
            raise InvalidStatus("Manually drawn damages cannot be created as pending")
        damage = Damage(
            id="",
            report_id=draft.report_id,
            image_id=draft.image_id,
            damage_group_id=draft.damage_group_id or str(uuid.uuid4()),
            section_id=draft.section_id,
            part_name=draft.part_name,
            bounding_box=draft.bounding_box,
            location=draft.location,
            damage_type=draft.damage_type,
            severity=parse_severity(draft.severity),
            status=status,
            confidence_score=MANUAL_CONFIDENCE,
            notes=draft.notes,
            **self._stamp(reviewer_id),
        )
        return await self._store.create_damage(damage)

    async def update_damage(self, damage_id: str, changes: Dict[str, Any], reviewer_id: str) -> Damage:
        """Edit form save: validates each field, then stamps the reviewer."""
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")
        current = await self._store.get_damage(damage_id)
        patch: Dict[str, Any] = dict(changes)
        if "status" in patch:
            patch["status"] = self.check_transition(current.status, patch["status"])
        if "severity" in patch:
            patch["severity"] = parse_severity(patch["severity"])
        if "bounding_box" in patch:
            box = patch["bounding_box"]
            if isinstance(box, dict):
                box = BoundingBox.from_dict(box)
            if not isinstance(box, BoundingBox):
                raise InvalidBoundingBox(f"Unsupported bounding box value: {box!r}")
            patch["bounding_box"] = box.validate(self._min_box_size)
        patch.update(self._stamp(reviewer_id))
        return await self._store.update_damage(damage_id, patch)

    async def delete_damage(self, damage_id: str) -> None:
        await self._store.delete_damage(damage_id)
