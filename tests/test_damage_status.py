"""Tests for damage classification rules and the status machine."""

import asyncio
from datetime import datetime, timezone

import pytest

from conftest import BODY, DOOR, HOOD, REPORT_ID, REVIEWER_ID
from damage_review.data.repositories.in_memory_damage_store import InMemoryDamageStore
from damage_review.domain.entities.bbox_entity import BoundingBox
from damage_review.domain.entities.damage_entity import (
    DamageDraft,
    DamageStatus,
    parse_severity,
    parse_status,
    severity_color,
    severity_label,
)
from damage_review.domain.errors import (
    ConfirmationRequired,
    InvalidBoundingBox,
    InvalidSeverity,
    InvalidStatus,
    NotFound,
)
from damage_review.domain.usecases.damage_status_usecase import DamageStatusMachine, next_status

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def machine(store: InMemoryDamageStore) -> DamageStatusMachine:
    return DamageStatusMachine(store, clock=lambda: FIXED_NOW)


def _draft(**overrides) -> DamageDraft:
    fields = dict(
        report_id=REPORT_ID,
        image_id="img-door",
        section_id=BODY,
        part_name=DOOR,
        bounding_box=BoundingBox(x=10, y=10, width=40, height=30),
    )
    fields.update(overrides)
    return DamageDraft(**fields)


class TestValueParsing:
    """Tests for status and severity parsing."""

    def test_status_from_string(self) -> None:
        """Known status strings map to the enum."""
        assert parse_status("non_billable") == DamageStatus.NON_BILLABLE

    def test_unknown_status_rejected(self) -> None:
        """Unknown status strings raise InvalidStatus."""
        with pytest.raises(InvalidStatus):
            parse_status("approved")

    @pytest.mark.parametrize("value", [-1, 6, "high", None])
    def test_severity_out_of_range(self, value) -> None:
        """Severity must be an integer within 0..5."""
        with pytest.raises(InvalidSeverity):
            parse_severity(value)

    def test_severity_presentation(self) -> None:
        """Severity labels and colors follow the review palette."""
        assert severity_label(0) == "No Damage"
        assert severity_label(5) == "Severe"
        assert severity_color(2) == "#10B981"
        assert severity_color(4) == "#F97316"

    def test_space_bar_cycle(self) -> None:
        """Pending enters the cycle at validated; false positive wraps to validated."""
        assert next_status(DamageStatus.PENDING) == DamageStatus.VALIDATED
        assert next_status(DamageStatus.VALIDATED) == DamageStatus.NON_BILLABLE
        assert next_status(DamageStatus.NON_BILLABLE) == DamageStatus.FALSE_POSITIVE
        assert next_status(DamageStatus.FALSE_POSITIVE) == DamageStatus.VALIDATED


class TestSetStatus:
    """Tests for single-damage classification."""

    def test_stamps_reviewer(self, machine: DamageStatusMachine) -> None:
        """Classifying records who reviewed and when."""
        updated = asyncio.run(machine.set_status("d1", "validated", REVIEWER_ID, notes="confirmed dent"))
        assert updated.status == DamageStatus.VALIDATED
        assert updated.reviewed_by == REVIEWER_ID
        assert updated.reviewed_at == FIXED_NOW
        assert updated.notes == "confirmed dent"

    def test_back_to_pending_rejected(self, machine: DamageStatusMachine, store: InMemoryDamageStore) -> None:
        """Nothing moves back to pending."""
        asyncio.run(machine.set_status("d1", "validated", REVIEWER_ID))
        with pytest.raises(InvalidStatus):
            asyncio.run(machine.set_status("d1", "pending", REVIEWER_ID))
        assert asyncio.run(store.get_damage("d1")).status == DamageStatus.VALIDATED

    def test_unknown_damage(self, machine: DamageStatusMachine) -> None:
        """Missing damages raise NotFound."""
        with pytest.raises(NotFound):
            asyncio.run(machine.set_status("nope", "validated", REVIEWER_ID))


class TestGroupStatus:
    """Tests for group propagation."""

    def test_applies_to_every_member(self, machine: DamageStatusMachine, store: InMemoryDamageStore) -> None:
        """All detections of the same defect share the classification."""
        updated = asyncio.run(machine.set_group_status("g-hood", "non_billable", REVIEWER_ID))
        assert sorted(d.id for d in updated) == ["d1", "d3"]
        assert asyncio.run(store.get_damage("d3")).status == DamageStatus.NON_BILLABLE
        assert asyncio.run(store.get_damage("d2")).status == DamageStatus.PENDING

    def test_empty_group(self, machine: DamageStatusMachine) -> None:
        """Unknown groups raise NotFound."""
        with pytest.raises(NotFound):
            asyncio.run(machine.set_group_status("g-none", "validated", REVIEWER_ID))


class TestBulkOperations:
    """Tests for validate-part and dismiss-part."""

    def test_validate_part_keeps_prior_decisions(self, machine: DamageStatusMachine, store: InMemoryDamageStore) -> None:
        """Only pending damages are validated."""
        asyncio.run(machine.set_status("d1", "false_positive", REVIEWER_ID))
        updated = asyncio.run(machine.validate_part(REPORT_ID, BODY, HOOD, REVIEWER_ID))
        assert sorted(d.id for d in updated) == ["d2", "d3"]
        assert asyncio.run(store.get_damage("d1")).status == DamageStatus.FALSE_POSITIVE
        assert asyncio.run(store.get_damage("d4")).status == DamageStatus.PENDING

    def test_validate_part_twice(self, machine: DamageStatusMachine, store: InMemoryDamageStore) -> None:
        """A second validate-part finds nothing pending and changes nothing."""
        asyncio.run(machine.validate_part(REPORT_ID, BODY, HOOD, REVIEWER_ID))
        before = asyncio.run(store.get_damages(REPORT_ID, BODY, HOOD))
        again = asyncio.run(machine.validate_part(REPORT_ID, BODY, HOOD, REVIEWER_ID))
        assert again == []
        assert asyncio.run(store.get_damages(REPORT_ID, BODY, HOOD)) == before

    def test_dismiss_requires_confirmation(self, machine: DamageStatusMachine, store: InMemoryDamageStore) -> None:
        """Dismissing a part without confirmation changes nothing."""
        with pytest.raises(ConfirmationRequired) as exc_info:
            asyncio.run(machine.dismiss_part(REPORT_ID, BODY, HOOD, REVIEWER_ID))
        assert exc_info.value.action == "dismiss_part"
        assert asyncio.run(store.get_damage("d1")).status == DamageStatus.PENDING

    def test_dismiss_overrides_everything(self, machine: DamageStatusMachine, store: InMemoryDamageStore) -> None:
        """A confirmed dismiss marks every damage of the part as false positive."""
        asyncio.run(machine.set_status("d1", "validated", REVIEWER_ID))
        asyncio.run(machine.dismiss_part(REPORT_ID, BODY, HOOD, REVIEWER_ID, confirmed=True))
        statuses = {d.status for d in asyncio.run(store.get_damages(REPORT_ID, BODY, HOOD))}
        assert statuses == {DamageStatus.FALSE_POSITIVE}


class TestManualDamages:
    """Tests for creating, editing and deleting damages."""

    def test_create_defaults(self, machine: DamageStatusMachine) -> None:
        """Drawn damages are trusted, stamped and get their own group."""
        created = asyncio.run(machine.create_damage(_draft(), REVIEWER_ID))
        assert created.id
        assert created.status == DamageStatus.VALIDATED
        assert created.confidence_score == 1.0
        assert created.reviewed_by == REVIEWER_ID
        assert created.damage_group_id

    def test_create_rejects_small_box(self, machine: DamageStatusMachine) -> None:
        """Boxes not larger than the minimum are invalid."""
        with pytest.raises(InvalidBoundingBox):
            asyncio.run(machine.create_damage(_draft(bounding_box=BoundingBox(0, 0, 10, 50)), REVIEWER_ID))

    def test_create_rejects_pending(self, machine: DamageStatusMachine) -> None:
        """Manual damages are created already classified."""
        with pytest.raises(InvalidStatus):
            asyncio.run(machine.create_damage(_draft(status=DamageStatus.PENDING), REVIEWER_ID))

    def test_create_on_unknown_image(self, machine: DamageStatusMachine) -> None:
        """Damages must reference an existing image."""
        with pytest.raises(NotFound):
            asyncio.run(machine.create_damage(_draft(image_id="img-missing"), REVIEWER_ID))

    def test_update_fields(self, machine: DamageStatusMachine) -> None:
        """Edit form changes are validated and applied."""
        updated = asyncio.run(
            machine.update_damage(
                "d4",
                {"severity": "5", "location": "Front Left", "bounding_box": {"x": 1, "y": 2, "width": 30, "height": 40}},
                REVIEWER_ID,
            )
        )
        assert updated.severity == 5
        assert updated.location == "Front Left"
        assert updated.bounding_box == BoundingBox(1, 2, 30, 40)
        assert updated.reviewed_at == FIXED_NOW

    def test_update_rejects_unknown_field(self, machine: DamageStatusMachine) -> None:
        """Only form fields may be edited."""
        with pytest.raises(ValueError):
            asyncio.run(machine.update_damage("d4", {"confidence_score": 0.1}, REVIEWER_ID))

    def test_delete(self, machine: DamageStatusMachine, store: InMemoryDamageStore) -> None:
        """Deleted damages are gone; deleting twice is NotFound."""
        asyncio.run(machine.delete_damage("d5"))
        with pytest.raises(NotFound):
            asyncio.run(store.get_damage("d5"))
        with pytest.raises(NotFound):
            asyncio.run(machine.delete_damage("d5"))
