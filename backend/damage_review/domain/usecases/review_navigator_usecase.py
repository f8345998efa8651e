from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Tuple

from damage_review.domain.entities.review_entity import ReviewSession
from damage_review.domain.errors import NotFound
from damage_review.domain.usecases.completion_usecase import CompletionAggregator


class AdvanceKind(str, Enum):
    NEXT_PART = "next_part"
    NEXT_SECTION = "next_section"
    END_OF_REPORT = "end_of_report"


@dataclass(frozen=True)
class AdvanceTarget:
    kind: AdvanceKind
    section_id: Optional[str] = None
    part_name: Optional[str] = None


class ReviewNavigator:
    """Computes the reviewer's position across section -> part -> image -> damage.

    Position changes are pure functions of a ReviewSession, except
    select_part which loads the part's images and damages from the store.
    """

    def __init__(self, aggregator: CompletionAggregator) -> None:
        self._aggregator = aggregator

    async def select_part(self, session: ReviewSession, section_id: str, part_name: str) -> ReviewSession:
        section = session.section(section_id)
        if session.sections and (section is None or section.part(part_name) is None):
            raise NotFound(f"Part '{part_name}' is not in the worklist of section '{section_id}'")

        info = await self._aggregator.load_part_info(session.report_id, section_id, part_name)
        return replace(
            session,
            current_section_id=section_id,
            current_part_name=part_name,
            current_image_index=0,
            selected_damage_id=None,
            images=info.images,
            damages=info.damages,
            expanded_sections=session.expanded_sections | {section_id},
            is_drawing_mode=False,
            is_editing=False,
            draft=None,
            load_error=None,
            failed_scope=None,
            pending_confirmation=None,
        )

    @staticmethod
    def select_image(session: ReviewSession, index: int) -> ReviewSession:
        if not session.images:
            return session
        clamped = max(0, min(index, len(session.images) - 1))
        if clamped == session.current_image_index:
            return session
        return replace(session, current_image_index=clamped, selected_damage_id=None)

    @classmethod
    def next_image(cls, session: ReviewSession) -> ReviewSession:
        return cls.select_image(session, session.current_image_index + 1)

    @classmethod
    def previous_image(cls, session: ReviewSession) -> ReviewSession:
        return cls.select_image(session, session.current_image_index - 1)

    @staticmethod
    def select_damage(session: ReviewSession, damage_id: Optional[str]) -> ReviewSession:
        if damage_id is not None and all(d.id != damage_id for d in session.damages):
            raise NotFound(f"Damage not found in current part: {damage_id}")
        return replace(session, selected_damage_id=damage_id)

    @staticmethod
    def _current_damage_ids(session: ReviewSession) -> List[str]:
        return [d.id for d in session.current_image_damages]

    @classmethod
    def select_next_damage(cls, session: ReviewSession) -> ReviewSession:
        ids = cls._current_damage_ids(session)
        if not ids:
            return session
        if session.selected_damage_id not in ids:
            return replace(session, selected_damage_id=ids[0])
        index = ids.index(session.selected_damage_id)
        if index >= len(ids) - 1:
            return session
        return replace(session, selected_damage_id=ids[index + 1])

    @classmethod
    def select_previous_damage(cls, session: ReviewSession) -> ReviewSession:
        ids = cls._current_damage_ids(session)
        if session.selected_damage_id not in ids:
            return session
        index = ids.index(session.selected_damage_id)
        if index == 0:
            return session
        return replace(session, selected_damage_id=ids[index - 1])

    @staticmethod
    def next_part_name(session: ReviewSession) -> Optional[str]:
        section = session.section(session.current_section_id)
        if section is None:
            return None
        names = section.part_names
        if session.current_part_name not in names:
            return None
        index = names.index(session.current_part_name)
        return names[index + 1] if index < len(names) - 1 else None

    async def next_part(self, session: ReviewSession) -> ReviewSession:
        """Next part of the current section; crossing sections is left to the caller."""
        part_name = self.next_part_name(session)
        if part_name is None:
            return session
        return await self.select_part(session, session.current_section_id, part_name)

    @classmethod
    def plan_advance(cls, session: ReviewSession) -> AdvanceTarget:
        part_name = cls.next_part_name(session)
        if part_name is not None:
            return AdvanceTarget(AdvanceKind.NEXT_PART, session.current_section_id, part_name)

        section_ids = [s.section_id for s in session.sections]
        if session.current_section_id in section_ids:
            index = section_ids.index(session.current_section_id)
            for candidate in session.sections[index + 1:]:
                if candidate.parts:
                    return AdvanceTarget(AdvanceKind.NEXT_SECTION, candidate.section_id, candidate.parts[0].part_name)
        return AdvanceTarget(AdvanceKind.END_OF_REPORT)

    async def advance_after_part_completion(self, session: ReviewSession) -> Tuple[ReviewSession, AdvanceTarget]:
        target = self.plan_advance(session)
        if target.kind == AdvanceKind.END_OF_REPORT:
            return session, target
        # select_part also marks the section expanded
        return await self.select_part(session, target.section_id, target.part_name), target
