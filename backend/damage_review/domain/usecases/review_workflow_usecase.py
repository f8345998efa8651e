from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from damage_review.core.utils.logger import get_logger
from damage_review.domain.entities.bbox_entity import BoundingBox
from damage_review.domain.entities.damage_entity import (
    STATUS_LABELS,
    DamageDraft,
    DamageStatus,
    parse_severity,
    parse_status,
    utcnow,
)
from damage_review.domain.entities.review_entity import ReviewSectionStatus, ReviewSession
from damage_review.domain.errors import NotFound, StoreUnavailable
from damage_review.domain.repositories.damage_store import DamageStore
from damage_review.domain.usecases.completion_usecase import CompletionAggregator
from damage_review.domain.usecases.damage_status_usecase import DamageStatusMachine, next_status
from damage_review.domain.usecases.review_navigator_usecase import AdvanceKind, ReviewNavigator

_logger = get_logger("review_workflow")

DISMISS_PART = "dismiss_part"
DEFAULT_DRAWN_SEVERITY = 3

# Draft fields the new-damage form may change
_DRAFT_FIELDS = frozenset({"location", "damage_type", "severity", "status", "notes", "part_name", "damage_group_id"})


@dataclass(frozen=True)
class KeyEvent:
    key: str
    ctrl: bool = False
    meta: bool = False

    @property
    def command(self) -> bool:
        return self.ctrl or self.meta


@dataclass(frozen=True)
class WorkflowResult:
    session: ReviewSession
    message: Optional[str] = None
    report_complete: bool = False


class ReviewWorkflow:
    """Reviewer flow over one report.

    Every mutation is acknowledged by the store before completion is
    recomputed, and completion is recomputed before the navigator moves.
    Store write failures propagate; the caller keeps its previous session
    value, so nothing unpersisted is ever shown.
    """

    def __init__(
        self,
        store: DamageStore,
        status_machine: DamageStatusMachine,
        aggregator: CompletionAggregator,
        navigator: ReviewNavigator,
        on_report_complete: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._store = store
        self._machine = status_machine
        self._aggregator = aggregator
        self._navigator = navigator
        self._on_report_complete = on_report_complete

    # Session and position

    async def open_session(
        self, report_id: str, reviewer_id: str, section_id: Optional[str] = None
    ) -> WorkflowResult:
        sections = await self._aggregator.load_sections(report_id)
        complete = await self._aggregator.report_complete(report_id)
        session = ReviewSession(report_id=report_id, reviewer_id=reviewer_id, sections=sections, report_complete=complete)
        if section_id is not None:
            section = session.section(section_id)
            if section is None:
                raise NotFound(f"Section has no damages to review: {section_id}")
            return await self.select_part(session, section_id, section.parts[0].part_name)
        return WorkflowResult(session, report_complete=complete)

    async def select_part(self, session: ReviewSession, section_id: str, part_name: str) -> WorkflowResult:
        try:
            await self._store.get_or_create_review_session(session.report_id, section_id, session.reviewer_id)
            sections = await self._aggregator.load_sections(session.report_id)
            new_session = await self._navigator.select_part(replace(session, sections=sections), section_id, part_name)
        except StoreUnavailable as e:
            _logger.error("Failed to load part %s/%s: %s", section_id, part_name, e)
            failed = replace(session, load_error=str(e), failed_scope=(section_id, part_name))
            return WorkflowResult(failed, message="Failed to load part data", report_complete=session.report_complete)
        return WorkflowResult(new_session, report_complete=new_session.report_complete)

    async def retry_load(self, session: ReviewSession) -> WorkflowResult:
        if session.load_error is None:
            return WorkflowResult(session, report_complete=session.report_complete)
        if session.failed_scope is None:
            return await self._after_mutation(replace(session, load_error=None), "Reloaded")

        section_id, part_name = session.failed_scope
        result = await self.select_part(session, section_id, part_name)
        if result.session.load_error is not None:
            return result
        # a write acknowledged before the failed reload may have finished the report
        try:
            complete = await self._aggregator.report_complete(session.report_id)
        except StoreUnavailable as e:
            failed = replace(session, load_error=str(e))
            return WorkflowResult(failed, message="Failed to load part data", report_complete=session.report_complete)
        message = None
        if complete and not session.report_complete:
            _logger.info("Report %s fully reviewed; handing off to recap", session.report_id)
            if self._on_report_complete is not None:
                self._on_report_complete(session.report_id)
            message = "All damages reviewed! Redirecting to recap..."
        return WorkflowResult(replace(result.session, report_complete=complete), message=message, report_complete=complete)

    async def next_part(self, session: ReviewSession) -> WorkflowResult:
        part_name = self._navigator.next_part_name(session)
        if part_name is None:
            return WorkflowResult(session, report_complete=session.report_complete)
        return await self.select_part(session, session.current_section_id, part_name)

    @staticmethod
    def toggle_expanded(session: ReviewSession, section_id: str) -> ReviewSession:
        if section_id in session.expanded_sections:
            return replace(session, expanded_sections=session.expanded_sections - {section_id})
        return replace(session, expanded_sections=session.expanded_sections | {section_id})

    @staticmethod
    def set_drawing_mode(session: ReviewSession, enabled: bool) -> ReviewSession:
        if session.is_editing:
            return session
        return replace(session, is_drawing_mode=enabled)

    # Edit form

    @staticmethod
    def draw_complete(session: ReviewSession, bounding_box: BoundingBox) -> ReviewSession:
        """Open the new-damage form for a box drawn on the current image."""
        image = session.current_image
        if image is None or session.current_section_id is None or session.current_part_name is None:
            return session
        draft = DamageDraft(
            report_id=session.report_id,
            image_id=image.id,
            section_id=session.current_section_id,
            part_name=session.current_part_name,
            bounding_box=bounding_box,
            severity=DEFAULT_DRAWN_SEVERITY,
            status=DamageStatus.VALIDATED,
        )
        return replace(session, is_drawing_mode=False, is_editing=True, draft=draft, selected_damage_id=None)

    @staticmethod
    def begin_edit(session: ReviewSession) -> ReviewSession:
        if session.selected_damage is None:
            return session
        return replace(session, is_editing=True, draft=None)

    @staticmethod
    def cancel_edit(session: ReviewSession) -> ReviewSession:
        return replace(session, is_editing=False, draft=None)

    async def save_edit(self, session: ReviewSession, changes: Dict[str, Any]) -> WorkflowResult:
        if not session.is_editing:
            return WorkflowResult(session, report_complete=session.report_complete)

        if session.draft is not None:
            unknown = set(changes) - _DRAFT_FIELDS
            if unknown:
                raise ValueError(f"Fields not editable: {sorted(unknown)}")
            fields = dict(changes)
            if "status" in fields:
                fields["status"] = parse_status(fields["status"])
            if "severity" in fields:
                fields["severity"] = parse_severity(fields["severity"])
            created = await self._machine.create_damage(replace(session.draft, **fields), session.reviewer_id)
            edited = replace(session, is_editing=False, draft=None, selected_damage_id=created.id)
            return await self._after_mutation(edited, "Damage created successfully")

        damage = session.selected_damage
        if damage is None:
            return WorkflowResult(self.cancel_edit(session), report_complete=session.report_complete)
        await self._machine.update_damage(damage.id, changes, session.reviewer_id)
        return await self._after_mutation(replace(session, is_editing=False), "Damage updated successfully")

    # Classification

    async def set_status(
        self, session: ReviewSession, damage_id: str, status: Any, notes: Optional[str] = None
    ) -> WorkflowResult:
        updated = await self._machine.set_status(damage_id, status, session.reviewer_id, notes)
        return await self._after_mutation(session, f"Status changed to {STATUS_LABELS[updated.status]}")

    async def cycle_status(self, session: ReviewSession) -> WorkflowResult:
        damage = session.selected_damage
        if damage is None:
            return WorkflowResult(session, report_complete=session.report_complete)
        return await self.set_status(session, damage.id, next_status(damage.status))

    async def set_group_status(self, session: ReviewSession, damage_group_id: str, status: Any) -> WorkflowResult:
        updated = await self._machine.set_group_status(damage_group_id, status, session.reviewer_id)
        return await self._after_mutation(session, f"{len(updated)} damage(s) in group updated")

    async def validate_part(self, session: ReviewSession) -> WorkflowResult:
        if session.current_section_id is None or session.current_part_name is None:
            return WorkflowResult(session, report_complete=session.report_complete)
        await self._machine.validate_part(
            session.report_id, session.current_section_id, session.current_part_name, session.reviewer_id
        )
        return await self._after_mutation(session, "All pending damages validated", advance=True)

    async def dismiss_part(self, session: ReviewSession, confirmed: bool = False) -> WorkflowResult:
        if session.current_section_id is None or session.current_part_name is None:
            return WorkflowResult(session, report_complete=session.report_complete)
        if not confirmed:
            asking = replace(session, pending_confirmation=DISMISS_PART)
            return WorkflowResult(
                asking,
                message="Are you sure you want to mark all damages on this part as false positives?",
                report_complete=session.report_complete,
            )
        await self._machine.dismiss_part(
            session.report_id,
            session.current_section_id,
            session.current_part_name,
            session.reviewer_id,
            confirmed=True,
        )
        cleared = replace(session, pending_confirmation=None)
        return await self._after_mutation(cleared, "All damages marked as false positive", advance=True)

    async def confirm_pending(self, session: ReviewSession) -> WorkflowResult:
        if session.pending_confirmation == DISMISS_PART:
            return await self.dismiss_part(session, confirmed=True)
        return WorkflowResult(session, report_complete=session.report_complete)

    @staticmethod
    def cancel_pending(session: ReviewSession) -> ReviewSession:
        return replace(session, pending_confirmation=None)

    async def delete_damage(self, session: ReviewSession, damage_id: str) -> WorkflowResult:
        await self._machine.delete_damage(damage_id)
        if session.selected_damage_id == damage_id:
            session = replace(session, selected_damage_id=None, is_editing=False)
        return await self._after_mutation(session, "Damage deleted")

    # Keyboard

    async def handle_key(self, session: ReviewSession, event: KeyEvent) -> WorkflowResult:
        """Reviewer shortcuts; all of them are ignored while the edit form is open."""
        unchanged = WorkflowResult(session, report_complete=session.report_complete)
        if session.is_editing:
            return unchanged

        if event.command:
            key = event.key.lower()
            if key == "f":
                return WorkflowResult(self._navigator.next_image(session), report_complete=session.report_complete)
            if key == "v":
                return await self.next_part(session)
            if key == "d":
                return await self.dismiss_part(session, confirmed=False)
            return unchanged

        if event.key == "ArrowRight":
            return WorkflowResult(self._navigator.select_next_damage(session), report_complete=session.report_complete)
        if event.key == "ArrowLeft":
            return WorkflowResult(
                self._navigator.select_previous_damage(session), report_complete=session.report_complete
            )
        if event.key in (" ", "Space"):
            return await self.cycle_status(session)
        return unchanged

    # Post-mutation bookkeeping

    async def _complete_section_if_done(self, session: ReviewSession) -> bool:
        section = session.section(session.current_section_id)
        if section is None or not section.is_complete or section.status == ReviewSectionStatus.COMPLETED:
            return False
        record = await self._store.get_or_create_review_session(
            session.report_id, section.section_id, session.reviewer_id
        )
        await self._store.update_review_session(
            record.id, {"section_status": ReviewSectionStatus.COMPLETED, "completed_at": utcnow()}
        )
        _logger.info("Section %s of report %s completed", section.section_id, session.report_id)
        return True

    async def _after_mutation(self, session: ReviewSession, message: str, advance: bool = False) -> WorkflowResult:
        """Reload after an acknowledged write, then complete, hand off or advance.

        The write already happened, so a store failure from here on leaves
        the session blocked on load_error instead of propagating.
        """
        try:
            return await self._refresh(session, message, advance)
        except StoreUnavailable as e:
            _logger.error("Reload after write failed for report %s: %s", session.report_id, e)
            scope = None
            if session.current_section_id is not None and session.current_part_name is not None:
                scope = (session.current_section_id, session.current_part_name)
            failed = replace(session, load_error=str(e), failed_scope=scope, is_editing=False, draft=None)
            return WorkflowResult(failed, message="Failed to load part data", report_complete=session.report_complete)

    async def _refresh(self, session: ReviewSession, message: str, advance: bool) -> WorkflowResult:
        sections = await self._aggregator.load_sections(session.report_id)
        refreshed = replace(session, sections=sections)
        if await self._complete_section_if_done(refreshed):
            refreshed = replace(refreshed, sections=await self._aggregator.load_sections(session.report_id))

        if refreshed.current_section_id is not None and refreshed.current_part_name is not None:
            info = await self._aggregator.load_part_info(
                refreshed.report_id, refreshed.current_section_id, refreshed.current_part_name
            )
            selected = refreshed.selected_damage_id
            if selected is not None and all(d.id != selected for d in info.damages):
                selected = None
            refreshed = replace(refreshed, damages=info.damages, images=info.images, selected_damage_id=selected)
            if refreshed.current_image_index >= len(info.images):
                refreshed = replace(refreshed, current_image_index=max(0, len(info.images) - 1))

        complete = await self._aggregator.report_complete(refreshed.report_id)
        if complete:
            if not session.report_complete:
                _logger.info("Report %s fully reviewed; handing off to recap", refreshed.report_id)
                if self._on_report_complete is not None:
                    self._on_report_complete(refreshed.report_id)
                message = "All damages reviewed! Redirecting to recap..."
            return WorkflowResult(replace(refreshed, report_complete=True), message=message, report_complete=True)

        refreshed = replace(refreshed, report_complete=False)
        if not advance:
            return WorkflowResult(refreshed, message=message)

        section = refreshed.section(refreshed.current_section_id)
        part_info = section.part(refreshed.current_part_name) if section is not None else None
        if part_info is None or not part_info.is_complete:
            return WorkflowResult(refreshed, message=message)

        moved, target = await self._navigator.advance_after_part_completion(refreshed)
        if target.kind == AdvanceKind.END_OF_REPORT:
            _logger.info("End of worklist for report %s with pending damages left", refreshed.report_id)
        else:
            if target.kind == AdvanceKind.NEXT_SECTION:
                await self._store.get_or_create_review_session(moved.report_id, target.section_id, moved.reviewer_id)
                moved = replace(moved, sections=await self._aggregator.load_sections(moved.report_id))
            _logger.info("Advanced to %s/%s", target.section_id, target.part_name)
        return WorkflowResult(moved, message=message)
