from typing import Dict, List, Sequence, Tuple

from damage_review.domain.entities.damage_entity import Damage, DamageStatus
from damage_review.domain.entities.recap_entity import (
    LOCATION_ORDER,
    SEVERE_THRESHOLD,
    DamageRecap,
    PartDamageInfo,
    VehicleLocation,
)
from damage_review.domain.repositories.damage_store import DamageStore
from damage_review.domain.usecases.completion_usecase import CompletionAggregator


# Checked in order; the first matching keyword wins
_LOCATION_KEYWORDS: Tuple[Tuple[VehicleLocation, Tuple[str, ...]], ...] = (
    (VehicleLocation.FRONT, ("front", "hood", "windshield", "grille")),
    (VehicleLocation.REAR, ("rear", "trunk", "tailgate")),
    (VehicleLocation.LEFT, ("left", "driver")),
    (VehicleLocation.RIGHT, ("right", "passenger")),
    (VehicleLocation.TOP, ("roof", "sunroof")),
)


def part_location(part_name: str) -> VehicleLocation:
    name = part_name.lower()
    for location, keywords in _LOCATION_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return location
    return VehicleLocation.CENTER


class RecapProjector:
    """Summary of validated damages for the final confirmation step."""

    def __init__(self, store: DamageStore) -> None:
        self._store = store

    @staticmethod
    def project(report_id: str, damages: Sequence[Damage]) -> DamageRecap:
        """Group validated damages by part; other statuses are left out entirely."""
        validated = [d for d in damages if d.status == DamageStatus.VALIDATED]

        by_part: Dict[str, List[Damage]] = {}
        for damage in validated:
            by_part.setdefault(damage.part_name, []).append(damage)

        parts = tuple(
            PartDamageInfo(
                name=part_name,
                location=part_location(part_name),
                max_severity=max(d.severity for d in part_damages),
                damage_count=len(part_damages),
                damages=tuple(part_damages),
            )
            for part_name, part_damages in by_part.items()
        )
        by_location = {location: tuple(p for p in parts if p.location == location) for location in LOCATION_ORDER}
        return DamageRecap(
            report_id=report_id,
            parts=parts,
            by_location=by_location,
            total_damages=len(validated),
            affected_parts=len(parts),
            severe_damages=sum(1 for d in validated if d.severity >= SEVERE_THRESHOLD),
        )

    async def load(self, report_id: str) -> DamageRecap:
        return self.project(report_id, await self._store.get_damages(report_id))

    async def confirm(self, report_id: str, reviewer_id: str) -> None:
        """Mark the report as manually reviewed once nothing is pending."""
        if not CompletionAggregator.is_report_complete(await self._store.get_damages(report_id)):
            raise ValueError(f"Report {report_id} still has damages pending review")
        await self._store.mark_report_reviewed(report_id, reviewer_id)
