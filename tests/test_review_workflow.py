"""Tests for the reviewer workflow: classification, auto-advance and completion."""

import asyncio
from dataclasses import replace
from typing import List

import pytest

from conftest import BODY, DOOR, HOOD, REPORT_ID, REVIEWER_ID, TIRE, TIRES, build_store, build_workflow, make_damage
from damage_review.data.repositories.in_memory_damage_store import InMemoryDamageStore
from damage_review.domain.entities.bbox_entity import BoundingBox
from damage_review.domain.entities.damage_entity import DamageImage, DamageStatus
from damage_review.domain.entities.review_entity import ReviewSectionStatus, ReviewSession
from damage_review.domain.errors import InvalidBoundingBox, NotFound, StoreUnavailable
from damage_review.domain.usecases.completion_usecase import CompletionAggregator
from damage_review.domain.usecases.recap_usecase import RecapProjector
from damage_review.domain.usecases.review_workflow_usecase import DISMISS_PART, KeyEvent, ReviewWorkflow


class FlakyStore(InMemoryDamageStore):
    """In-memory store whose reads or writes can be switched to fail.

    With fail_reads_after_write set, a successful bulk write turns fail_reads on.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.fail_reads_after_write = False

    async def get_images(self, report_id, section_id=None, part_name=None):
        if self.fail_reads:
            raise StoreUnavailable("connection reset")
        return await super().get_images(report_id, section_id, part_name)

    async def get_damages(self, report_id, section_id=None, part_name=None):
        if self.fail_reads:
            raise StoreUnavailable("read timeout")
        return await super().get_damages(report_id, section_id, part_name)

    async def update_damage(self, damage_id, patch):
        if self.fail_writes:
            raise StoreUnavailable("write timeout")
        return await super().update_damage(damage_id, patch)

    async def update_damages_by_scope(self, report_id, section_id, part_name, patch, only_status=None):
        if self.fail_writes:
            raise StoreUnavailable("write timeout")
        updated = await super().update_damages_by_scope(report_id, section_id, part_name, patch, only_status)
        if self.fail_reads_after_write:
            self.fail_reads = True
        return updated


def _flaky_store() -> FlakyStore:
    store = FlakyStore()
    seeded = build_store()
    for image in asyncio.run(seeded.get_images(REPORT_ID)):
        store.add_image(image)
    for damage in asyncio.run(seeded.get_damages(REPORT_ID)):
        store.add_damage(damage)
    return store


def _open(workflow: ReviewWorkflow, section_id=BODY) -> ReviewSession:
    return asyncio.run(workflow.open_session(REPORT_ID, REVIEWER_ID, section_id)).session


def _status(store: InMemoryDamageStore, damage_id: str) -> DamageStatus:
    return asyncio.run(store.get_damage(damage_id)).status


class TestOpenSession:
    """Tests for opening a review."""

    def test_without_section(self, workflow: ReviewWorkflow) -> None:
        """The worklist is loaded but no part is selected."""
        result = asyncio.run(workflow.open_session(REPORT_ID, REVIEWER_ID))
        assert [s.section_id for s in result.session.sections] == [BODY, TIRES]
        assert result.session.current_part_name is None
        assert not result.report_complete

    def test_with_section_selects_first_part(self, workflow: ReviewWorkflow, store: InMemoryDamageStore) -> None:
        """Opening a section selects its first part and starts a review record."""
        session = _open(workflow)
        assert (session.current_section_id, session.current_part_name) == (BODY, HOOD)
        records = asyncio.run(store.get_review_sessions(REPORT_ID))
        assert [(r.section_id, r.section_status) for r in records] == [(BODY, ReviewSectionStatus.IN_PROGRESS)]
        assert session.section(BODY).status == ReviewSectionStatus.IN_PROGRESS

    def test_unknown_section(self, workflow: ReviewWorkflow) -> None:
        with pytest.raises(NotFound):
            asyncio.run(workflow.open_session(REPORT_ID, REVIEWER_ID, "motor"))


class TestAutoAdvance:
    """Tests for the end-to-end review of a two-section report."""

    def test_walks_the_whole_report(self) -> None:
        """Bulk validation advances part by part until the report completes."""
        store = build_store()
        completed: List[str] = []
        workflow = build_workflow(store, on_report_complete=completed.append)
        session = _open(workflow)

        result = asyncio.run(workflow.validate_part(session))
        assert result.message == "All pending damages validated"
        assert (result.session.current_section_id, result.session.current_part_name) == (BODY, DOOR)

        result = asyncio.run(workflow.validate_part(result.session))
        assert (result.session.current_section_id, result.session.current_part_name) == (TIRES, TIRE)
        assert result.session.section(BODY).status == ReviewSectionStatus.COMPLETED
        assert result.session.section(TIRES).status == ReviewSectionStatus.IN_PROGRESS
        assert TIRES in result.session.expanded_sections
        assert completed == []

        result = asyncio.run(workflow.validate_part(result.session))
        assert result.report_complete
        assert result.session.report_complete
        assert result.message == "All damages reviewed! Redirecting to recap..."
        assert completed == [REPORT_ID]
        assert result.session.current_part_name == TIRE

    def test_validate_keeps_prior_decisions(self, workflow: ReviewWorkflow, store: InMemoryDamageStore) -> None:
        """Already classified damages keep their status on validate-part."""
        session = _open(workflow)
        result = asyncio.run(workflow.set_status(session, "d2", "non_billable"))
        assert result.message == "Status changed to Non-Billable"
        asyncio.run(workflow.validate_part(result.session))
        assert _status(store, "d2") == DamageStatus.NON_BILLABLE
        assert _status(store, "d1") == DamageStatus.VALIDATED

    def test_single_status_change_does_not_advance(self, workflow: ReviewWorkflow) -> None:
        """Completing a part one damage at a time keeps the reviewer in place."""
        session = _open(workflow)
        for damage_id in ("d1", "d2", "d3"):
            session = asyncio.run(workflow.set_status(session, damage_id, "validated")).session
        assert session.current_part_name == HOOD
        assert session.section(BODY).part(HOOD).is_complete

    def test_completion_callback_fires_once(self) -> None:
        """Further changes on a complete report do not re-fire the hand-off."""
        store = build_store()
        for damage_id in ("d1", "d2", "d3", "d4"):
            asyncio.run(store.update_damage(damage_id, {"status": DamageStatus.VALIDATED}))
        completed: List[str] = []
        workflow = build_workflow(store, on_report_complete=completed.append)
        session = _open(workflow, TIRES)

        session = asyncio.run(workflow.set_status(session, "d5", "false_positive")).session
        assert completed == [REPORT_ID]
        result = asyncio.run(workflow.set_status(session, "d5", "validated"))
        assert result.report_complete
        assert completed == [REPORT_ID]

    def test_dismiss_asks_for_confirmation(self, workflow: ReviewWorkflow, store: InMemoryDamageStore) -> None:
        """Dismiss first asks, then marks the whole part as false positive."""
        session = _open(workflow)
        asking = asyncio.run(workflow.dismiss_part(session))
        assert asking.session.pending_confirmation == DISMISS_PART
        assert _status(store, "d1") == DamageStatus.PENDING

        result = asyncio.run(workflow.confirm_pending(asking.session))
        assert result.session.pending_confirmation is None
        assert {_status(store, d) for d in ("d1", "d2", "d3")} == {DamageStatus.FALSE_POSITIVE}
        assert result.session.current_part_name == DOOR

    def test_cancel_confirmation(self, workflow: ReviewWorkflow) -> None:
        session = _open(workflow)
        asking = asyncio.run(workflow.dismiss_part(session)).session
        assert ReviewWorkflow.cancel_pending(asking).pending_confirmation is None

    def test_validate_one_section_dismiss_the_other(self) -> None:
        """Validated damages reach the recap; a dismissed section does not."""
        store = InMemoryDamageStore()
        for image_id, section_id, part_name in (("img-a", BODY, HOOD), ("img-b", TIRES, TIRE)):
            store.add_image(
                DamageImage(image_id, REPORT_ID, section_id, part_name, f"https://images.example.com/{image_id}.jpg")
            )
        for damage_id, image_id, section_id, part_name in (
            ("a1", "img-a", BODY, HOOD),
            ("a2", "img-a", BODY, HOOD),
            ("b1", "img-b", TIRES, TIRE),
            ("b2", "img-b", TIRES, TIRE),
        ):
            store.add_damage(make_damage(damage_id, image_id, section_id, part_name))
        completed: List[str] = []
        workflow = build_workflow(store, on_report_complete=completed.append)

        result = asyncio.run(workflow.validate_part(_open(workflow)))
        assert not result.report_complete
        assert not asyncio.run(CompletionAggregator(store).report_complete(REPORT_ID))
        assert (result.session.current_section_id, result.session.current_part_name) == (TIRES, TIRE)
        assert completed == []

        result = asyncio.run(workflow.dismiss_part(result.session, confirmed=True))
        assert result.report_complete
        assert completed == [REPORT_ID]

        recap = asyncio.run(RecapProjector(store).load(REPORT_ID))
        assert recap.total_damages == 2
        assert sorted(d.id for part in recap.parts for d in part.damages) == ["a1", "a2"]


class TestKeyboard:
    """Tests for reviewer shortcuts."""

    def test_space_cycles_selected_damage(self, workflow: ReviewWorkflow, store: InMemoryDamageStore) -> None:
        """Space moves the selected damage one step through the cycle."""
        session = replace(_open(workflow), selected_damage_id="d1")
        session = asyncio.run(workflow.handle_key(session, KeyEvent(" "))).session
        assert _status(store, "d1") == DamageStatus.VALIDATED
        asyncio.run(workflow.handle_key(session, KeyEvent("Space")))
        assert _status(store, "d1") == DamageStatus.NON_BILLABLE

    def test_space_without_selection(self, workflow: ReviewWorkflow, store: InMemoryDamageStore) -> None:
        session = _open(workflow)
        result = asyncio.run(workflow.handle_key(session, KeyEvent(" ")))
        assert result.session is session
        assert _status(store, "d1") == DamageStatus.PENDING

    def test_arrows_step_damages(self, workflow: ReviewWorkflow) -> None:
        session = _open(workflow)
        session = asyncio.run(workflow.handle_key(session, KeyEvent("ArrowRight"))).session
        session = asyncio.run(workflow.handle_key(session, KeyEvent("ArrowRight"))).session
        assert session.selected_damage_id == "d2"
        session = asyncio.run(workflow.handle_key(session, KeyEvent("ArrowLeft"))).session
        assert session.selected_damage_id == "d1"

    def test_command_shortcuts(self, workflow: ReviewWorkflow) -> None:
        """Ctrl/Cmd+F next image, Ctrl/Cmd+V next part, Ctrl/Cmd+D dismiss."""
        session = _open(workflow)
        session = asyncio.run(workflow.handle_key(session, KeyEvent("f", ctrl=True))).session
        assert session.current_image_index == 1
        asking = asyncio.run(workflow.handle_key(session, KeyEvent("D", meta=True))).session
        assert asking.pending_confirmation == DISMISS_PART
        session = asyncio.run(workflow.handle_key(session, KeyEvent("v", ctrl=True))).session
        assert session.current_part_name == DOOR

    def test_keys_ignored_while_editing(self, workflow: ReviewWorkflow, store: InMemoryDamageStore) -> None:
        """The edit form swallows every shortcut."""
        session = ReviewWorkflow.begin_edit(replace(_open(workflow), selected_damage_id="d1"))
        assert session.is_editing
        for event in (KeyEvent(" "), KeyEvent("ArrowRight"), KeyEvent("f", ctrl=True)):
            assert asyncio.run(workflow.handle_key(session, event)).session is session
        assert _status(store, "d1") == DamageStatus.PENDING


class TestEditing:
    """Tests for drawing and the edit form."""

    def test_drawn_box_creates_damage(self, workflow: ReviewWorkflow, store: InMemoryDamageStore) -> None:
        """A drawn box opens a draft which is saved as a validated damage."""
        session = ReviewWorkflow.set_drawing_mode(_open(workflow), True)
        session = ReviewWorkflow.draw_complete(session, BoundingBox(x=5, y=5, width=60, height=40))
        assert session.is_editing and not session.is_drawing_mode
        assert session.draft.severity == 3
        assert session.draft.image_id == "img-hood-1"

        result = asyncio.run(workflow.save_edit(session, {"damage_type": "Scratch", "location": "Center"}))
        created = result.session.selected_damage
        assert created is not None
        assert (created.damage_type, created.status, created.confidence_score) == ("Scratch", DamageStatus.VALIDATED, 1.0)
        assert created.image_id == "img-hood-1"
        assert not result.session.is_editing
        assert len(asyncio.run(store.get_damages(REPORT_ID, BODY, HOOD))) == 4

    def test_draft_box_still_validated(self, workflow: ReviewWorkflow) -> None:
        """Creating a damage re-checks the box size."""
        session = ReviewWorkflow.draw_complete(_open(workflow), BoundingBox(x=5, y=5, width=8, height=40))
        with pytest.raises(InvalidBoundingBox):
            asyncio.run(workflow.save_edit(session, {}))

    def test_edit_existing_damage(self, workflow: ReviewWorkflow, store: InMemoryDamageStore) -> None:
        session = ReviewWorkflow.begin_edit(replace(_open(workflow), selected_damage_id="d2"))
        result = asyncio.run(workflow.save_edit(session, {"severity": 1, "notes": "polish only"}))
        assert result.message == "Damage updated successfully"
        updated = asyncio.run(store.get_damage("d2"))
        assert (updated.severity, updated.notes, updated.reviewed_by) == (1, "polish only", REVIEWER_ID)
        assert result.session.selected_damage.severity == 1

    def test_drawing_mode_locked_while_editing(self, workflow: ReviewWorkflow) -> None:
        session = ReviewWorkflow.begin_edit(replace(_open(workflow), selected_damage_id="d2"))
        assert not ReviewWorkflow.set_drawing_mode(session, True).is_drawing_mode
        assert not ReviewWorkflow.cancel_edit(session).is_editing

    def test_delete_clears_selection(self, workflow: ReviewWorkflow) -> None:
        session = replace(_open(workflow), selected_damage_id="d2")
        result = asyncio.run(workflow.delete_damage(session, "d2"))
        assert result.session.selected_damage_id is None
        assert [d.id for d in result.session.current_image_damages] == ["d1"]

    def test_toggle_expanded(self, workflow: ReviewWorkflow) -> None:
        session = _open(workflow)
        collapsed = ReviewWorkflow.toggle_expanded(session, BODY)
        assert BODY not in collapsed.expanded_sections
        assert BODY in ReviewWorkflow.toggle_expanded(collapsed, BODY).expanded_sections


class TestStoreFailures:
    """Tests for read and write failures."""

    def test_read_failure_blocks_until_retry(self) -> None:
        """A failed part load keeps the old position and records the error."""
        store = _flaky_store()
        workflow = build_workflow(store)
        session = _open(workflow)

        store.fail_reads = True
        result = asyncio.run(workflow.select_part(session, BODY, DOOR))
        assert result.message == "Failed to load part data"
        assert result.session.load_error
        assert result.session.failed_scope == (BODY, DOOR)
        assert result.session.current_part_name == HOOD

        store.fail_reads = False
        retried = asyncio.run(workflow.retry_load(result.session))
        assert retried.session.current_part_name == DOOR
        assert retried.session.load_error is None

    def test_write_failure_propagates(self) -> None:
        """Failed writes raise and leave the store untouched."""
        store = _flaky_store()
        workflow = build_workflow(store)
        session = _open(workflow)

        store.fail_writes = True
        with pytest.raises(StoreUnavailable):
            asyncio.run(workflow.validate_part(session))
        assert _status(store, "d1") == DamageStatus.PENDING
        assert session.current_part_name == HOOD

    def test_reload_failure_after_write(self) -> None:
        """A write that lands before the reload fails blocks on load_error, not a raise."""
        store = _flaky_store()
        workflow = build_workflow(store)
        session = _open(workflow)

        store.fail_reads_after_write = True
        result = asyncio.run(workflow.validate_part(session))
        assert _status(store, "d1") == DamageStatus.VALIDATED
        assert result.message == "Failed to load part data"
        assert result.session.load_error
        assert result.session.failed_scope == (BODY, HOOD)

        store.fail_reads_after_write = False
        store.fail_reads = False
        retried = asyncio.run(workflow.retry_load(result.session))
        assert retried.session.load_error is None
        assert {d.status for d in retried.session.damages} == {DamageStatus.VALIDATED}

    def test_retry_hands_off_completed_report(self) -> None:
        """Retrying after a failed reload still fires the completion hand-off."""
        store = _flaky_store()
        for damage_id in ("d1", "d2", "d3", "d4"):
            asyncio.run(store.update_damage(damage_id, {"status": DamageStatus.VALIDATED}))
        completed: List[str] = []
        workflow = build_workflow(store, on_report_complete=completed.append)
        session = _open(workflow, TIRES)

        store.fail_reads_after_write = True
        result = asyncio.run(workflow.validate_part(session))
        assert result.session.load_error
        assert completed == []

        store.fail_reads_after_write = False
        store.fail_reads = False
        retried = asyncio.run(workflow.retry_load(result.session))
        assert retried.report_complete
        assert retried.message == "All damages reviewed! Redirecting to recap..."
        assert completed == [REPORT_ID]
