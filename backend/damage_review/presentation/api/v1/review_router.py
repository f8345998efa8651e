from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from damage_review.core.di.service_locator import ServiceLocator
from damage_review.core.utils.logger import get_logger
from damage_review.domain.entities.review_entity import ReviewSession
from damage_review.domain.usecases.review_navigator_usecase import ReviewNavigator
from damage_review.domain.usecases.review_workflow_usecase import KeyEvent, ReviewWorkflow, WorkflowResult
from damage_review.presentation.api.v1.damage_router import BoundingBoxModel, DamageResponse, damage_response
from damage_review.presentation.api.v1.errors import http_error


router = APIRouter(prefix="/api/v1/review", tags=["review"])
logger = get_logger("review_router")


class OpenSessionRequest(BaseModel):
    report_id: str
    reviewer_id: str
    section_id: Optional[str] = None


class SelectPartRequest(BaseModel):
    section_id: str
    part_name: str


class SelectDamageRequest(BaseModel):
    damage_id: Optional[str] = None


class KeyRequest(BaseModel):
    key: str
    ctrl: bool = False
    meta: bool = False


class DrawingModeRequest(BaseModel):
    enabled: bool


class DismissRequest(BaseModel):
    confirmed: bool = False


class SaveEditRequest(BaseModel):
    changes: Dict[str, Any] = {}


class StatusChangeRequest(BaseModel):
    status: str
    notes: Optional[str] = None


class PartResponse(BaseModel):
    part_name: str
    total_damages: int
    reviewed_damages: int
    image_count: int
    is_complete: bool


class SectionResponse(BaseModel):
    section_id: str
    section_name: str
    status: str
    total_parts: int
    reviewed_parts: int
    total_damages: int
    reviewed_damages: int
    is_complete: bool
    is_expanded: bool
    parts: List[PartResponse]


class ImageResponse(BaseModel):
    id: str
    image_url: str
    order_index: int
    image_type: str
    width: Optional[int] = None
    height: Optional[int] = None


class DraftResponse(BaseModel):
    image_id: str
    section_id: str
    part_name: str
    bounding_box: BoundingBoxModel
    location: str
    damage_type: str
    severity: int
    status: str
    notes: str


class SessionResponse(BaseModel):
    session_id: str
    report_id: str
    reviewer_id: str
    sections: List[SectionResponse]
    current_section_id: Optional[str] = None
    current_part_name: Optional[str] = None
    current_image_index: int
    image_count: int
    current_image: Optional[ImageResponse] = None
    damages: List[DamageResponse]
    selected_damage_id: Optional[str] = None
    is_drawing_mode: bool
    is_editing: bool
    draft: Optional[DraftResponse] = None
    load_error: Optional[str] = None
    pending_confirmation: Optional[str] = None
    reviewed_damages: int
    total_damages: int
    report_complete: bool
    message: Optional[str] = None


def session_response(session_id: str, session: ReviewSession, message: Optional[str] = None) -> SessionResponse:
    image = session.current_image
    draft = session.draft
    return SessionResponse(
        session_id=session_id,
        report_id=session.report_id,
        reviewer_id=session.reviewer_id,
        sections=[
            SectionResponse(
                section_id=s.section_id,
                section_name=s.section_name,
                status=s.status.value,
                total_parts=s.total_parts,
                reviewed_parts=s.reviewed_parts,
                total_damages=s.total_damages,
                reviewed_damages=s.reviewed_damages,
                is_complete=s.is_complete,
                is_expanded=s.section_id in session.expanded_sections,
                parts=[
                    PartResponse(
                        part_name=p.part_name,
                        total_damages=p.total_damages,
                        reviewed_damages=p.reviewed_damages,
                        image_count=len(p.images),
                        is_complete=p.is_complete,
                    )
                    for p in s.parts
                ],
            )
            for s in session.sections
        ],
        current_section_id=session.current_section_id,
        current_part_name=session.current_part_name,
        current_image_index=session.current_image_index,
        image_count=len(session.images),
        current_image=ImageResponse(
            id=image.id,
            image_url=image.image_url,
            order_index=image.order_index,
            image_type=image.image_type,
            width=image.width,
            height=image.height,
        )
        if image is not None
        else None,
        damages=[damage_response(d) for d in session.current_image_damages],
        selected_damage_id=session.selected_damage_id,
        is_drawing_mode=session.is_drawing_mode,
        is_editing=session.is_editing,
        draft=DraftResponse(
            image_id=draft.image_id,
            section_id=draft.section_id,
            part_name=draft.part_name,
            bounding_box=BoundingBoxModel(**draft.bounding_box.to_dict()),
            location=draft.location,
            damage_type=draft.damage_type,
            severity=draft.severity,
            status=draft.status.value,
            notes=draft.notes,
        )
        if draft is not None
        else None,
        load_error=session.load_error,
        pending_confirmation=session.pending_confirmation,
        reviewed_damages=sum(s.reviewed_damages for s in session.sections),
        total_damages=sum(s.total_damages for s in session.sections),
        report_complete=session.report_complete,
        message=message,
    )


async def _run(session_id: str, op: Callable[[ReviewSession], Awaitable[WorkflowResult]]) -> SessionResponse:
    """Apply a workflow operation; the registry keeps the old value if it fails."""
    registry = ServiceLocator.sessions()
    try:
        result = await op(registry.get(session_id))
    except Exception as e:
        raise http_error(e)
    registry.save(session_id, result.session)
    return session_response(session_id, result.session, result.message)


def _run_sync(session_id: str, op: Callable[[ReviewSession], ReviewSession]) -> SessionResponse:
    registry = ServiceLocator.sessions()
    try:
        session = op(registry.get(session_id))
    except Exception as e:
        raise http_error(e)
    registry.save(session_id, session)
    return session_response(session_id, session)


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def open_session(req: OpenSessionRequest):
    try:
        result = await ServiceLocator.workflow().open_session(req.report_id, req.reviewer_id, req.section_id)
    except Exception as e:
        raise http_error(e)
    session_id, session = ServiceLocator.sessions().add(result.session)
    logger.info("Review session %s opened for report %s by %s", session_id, req.report_id, req.reviewer_id)
    return session_response(session_id, session, result.message)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str):
    return _run_sync(session_id, lambda s: s)


@router.delete("/sessions/{session_id}", status_code=204)
def close_session(session_id: str):
    ServiceLocator.close_session(session_id)


@router.post("/sessions/{session_id}/select-part", response_model=SessionResponse)
async def select_part(session_id: str, req: SelectPartRequest):
    return await _run(session_id, lambda s: ServiceLocator.workflow().select_part(s, req.section_id, req.part_name))


@router.post("/sessions/{session_id}/retry", response_model=SessionResponse)
async def retry_load(session_id: str):
    return await _run(session_id, ServiceLocator.workflow().retry_load)


@router.post("/sessions/{session_id}/sections/{section_id}/toggle", response_model=SessionResponse)
def toggle_section(session_id: str, section_id: str):
    return _run_sync(session_id, lambda s: ReviewWorkflow.toggle_expanded(s, section_id))


@router.post("/sessions/{session_id}/next-image", response_model=SessionResponse)
def next_image(session_id: str):
    return _run_sync(session_id, ReviewNavigator.next_image)


@router.post("/sessions/{session_id}/previous-image", response_model=SessionResponse)
def previous_image(session_id: str):
    return _run_sync(session_id, ReviewNavigator.previous_image)


@router.post("/sessions/{session_id}/next-part", response_model=SessionResponse)
async def next_part(session_id: str):
    return await _run(session_id, ServiceLocator.workflow().next_part)


@router.post("/sessions/{session_id}/select-damage", response_model=SessionResponse)
def select_damage(session_id: str, req: SelectDamageRequest):
    return _run_sync(session_id, lambda s: ReviewNavigator.select_damage(s, req.damage_id))


@router.post("/sessions/{session_id}/keys", response_model=SessionResponse)
async def handle_key(session_id: str, req: KeyRequest):
    event = KeyEvent(key=req.key, ctrl=req.ctrl, meta=req.meta)
    return await _run(session_id, lambda s: ServiceLocator.workflow().handle_key(s, event))


@router.post("/sessions/{session_id}/drawing-mode", response_model=SessionResponse)
def set_drawing_mode(session_id: str, req: DrawingModeRequest):
    return _run_sync(session_id, lambda s: ReviewWorkflow.set_drawing_mode(s, req.enabled))


@router.post("/sessions/{session_id}/validate-part", response_model=SessionResponse)
async def validate_part(session_id: str):
    return await _run(session_id, ServiceLocator.workflow().validate_part)


@router.post("/sessions/{session_id}/dismiss-part", response_model=SessionResponse)
async def dismiss_part(session_id: str, req: DismissRequest):
    return await _run(session_id, lambda s: ServiceLocator.workflow().dismiss_part(s, confirmed=req.confirmed))


@router.post("/sessions/{session_id}/confirmation/confirm", response_model=SessionResponse)
async def confirm_pending(session_id: str):
    return await _run(session_id, ServiceLocator.workflow().confirm_pending)


@router.post("/sessions/{session_id}/confirmation/cancel", response_model=SessionResponse)
def cancel_confirmation(session_id: str):
    return _run_sync(session_id, ReviewWorkflow.cancel_pending)


@router.post("/sessions/{session_id}/edit", response_model=SessionResponse)
def begin_edit(session_id: str):
    return _run_sync(session_id, ReviewWorkflow.begin_edit)


@router.post("/sessions/{session_id}/edit/save", response_model=SessionResponse)
async def save_edit(session_id: str, req: SaveEditRequest):
    return await _run(session_id, lambda s: ServiceLocator.workflow().save_edit(s, req.changes))


@router.post("/sessions/{session_id}/edit/cancel", response_model=SessionResponse)
def cancel_edit(session_id: str):
    return _run_sync(session_id, ReviewWorkflow.cancel_edit)


@router.post("/sessions/{session_id}/damages/{damage_id}/status", response_model=SessionResponse)
async def set_damage_status(session_id: str, damage_id: str, req: StatusChangeRequest):
    return await _run(session_id, lambda s: ServiceLocator.workflow().set_status(s, damage_id, req.status, req.notes))


@router.post("/sessions/{session_id}/groups/{damage_group_id}/status", response_model=SessionResponse)
async def set_group_status(session_id: str, damage_group_id: str, req: StatusChangeRequest):
    return await _run(session_id, lambda s: ServiceLocator.workflow().set_group_status(s, damage_group_id, req.status))


@router.delete("/sessions/{session_id}/damages/{damage_id}", response_model=SessionResponse)
async def delete_damage(session_id: str, damage_id: str):
    return await _run(session_id, lambda s: ServiceLocator.workflow().delete_damage(s, damage_id))
