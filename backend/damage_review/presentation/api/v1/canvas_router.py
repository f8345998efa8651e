from dataclasses import replace
from typing import Optional

from fastapi import APIRouter, Response
from pydantic import BaseModel

from damage_review.core.di.service_locator import ServiceLocator
from damage_review.core.utils.logger import get_logger
from damage_review.presentation.api.v1.damage_router import BoundingBoxModel
from damage_review.presentation.api.v1.errors import http_error
from damage_review.presentation.api.v1.review_router import SessionResponse, session_response
from damage_review.presentation.canvas.annotation_canvas import AnnotationCanvas


router = APIRouter(prefix="/api/v1/review/sessions", tags=["canvas"])
logger = get_logger("canvas_router")


class PointerRequest(BaseModel):
    x: float
    y: float


class WheelRequest(BaseModel):
    delta_y: float


class ZoomRequest(BaseModel):
    direction: str  # "in" | "out"


class ViewportRequest(BaseModel):
    width: int
    height: int


class CanvasResponse(BaseModel):
    scale: float
    offset_x: float
    offset_y: float
    zoom_percent: int
    is_panning: bool
    is_drawing_mode: bool
    live_box: Optional[BoundingBoxModel] = None
    emitted_box: Optional[BoundingBoxModel] = None
    session: SessionResponse


def _synced_canvas(session_id: str) -> AnnotationCanvas:
    """Canvas showing the session's current image, damages and drawing mode."""
    session = ServiceLocator.sessions().get(session_id)
    canvas = ServiceLocator.canvas(session_id)

    image = session.current_image
    if image is None:
        if canvas.image is not None:
            canvas.clear_image()
    else:
        loader = ServiceLocator.image_loader()
        if canvas.image_id != image.id:
            canvas.set_image(loader.load(image.image_url), image_id=image.id)
        if image.width is None or image.height is None:
            # store rows may lack pixel size; fill it from the decoded raster
            resolved = loader.resolve(image)
            images = tuple(resolved if i.id == image.id else i for i in session.images)
            session = ServiceLocator.sessions().save(session_id, replace(session, images=images))

    canvas.set_damages(session.current_image_damages, session.selected_damage_id)
    if canvas.is_drawing_mode != session.is_drawing_mode:
        canvas.set_drawing_mode(session.is_drawing_mode)
    return canvas


def _canvas_response(session_id: str, canvas: AnnotationCanvas, emitted=None) -> CanvasResponse:
    # callbacks may have replaced the session while handling the event
    session = ServiceLocator.sessions().get(session_id)
    return CanvasResponse(
        scale=canvas.scale,
        offset_x=canvas.offset[0],
        offset_y=canvas.offset[1],
        zoom_percent=canvas.zoom_percent,
        is_panning=canvas.is_panning,
        is_drawing_mode=canvas.is_drawing_mode,
        live_box=BoundingBoxModel(**canvas.live_box.to_dict()) if canvas.live_box is not None else None,
        emitted_box=BoundingBoxModel(**emitted.to_dict()) if emitted is not None else None,
        session=session_response(session_id, session),
    )


@router.get("/{session_id}/canvas", response_model=CanvasResponse)
def get_canvas(session_id: str):
    try:
        canvas = _synced_canvas(session_id)
    except Exception as e:
        raise http_error(e)
    return _canvas_response(session_id, canvas)


@router.post("/{session_id}/canvas/viewport", response_model=CanvasResponse)
def set_viewport(session_id: str, req: ViewportRequest):
    if req.width <= 0 or req.height <= 0:
        raise http_error(ValueError(f"Viewport must be positive, got {req.width}x{req.height}"))
    try:
        canvas = _synced_canvas(session_id)
        canvas.resize(req.width, req.height)
        canvas.fit()
    except Exception as e:
        raise http_error(e)
    return _canvas_response(session_id, canvas)


@router.post("/{session_id}/canvas/pointer-down", response_model=CanvasResponse)
def pointer_down(session_id: str, req: PointerRequest):
    try:
        canvas = _synced_canvas(session_id)
        canvas.on_pointer_down((req.x, req.y))
    except Exception as e:
        raise http_error(e)
    return _canvas_response(session_id, canvas)


@router.post("/{session_id}/canvas/pointer-move", response_model=CanvasResponse)
def pointer_move(session_id: str, req: PointerRequest):
    try:
        canvas = _synced_canvas(session_id)
        canvas.on_pointer_move((req.x, req.y))
    except Exception as e:
        raise http_error(e)
    return _canvas_response(session_id, canvas)


@router.post("/{session_id}/canvas/pointer-up", response_model=CanvasResponse)
def pointer_up(session_id: str):
    try:
        canvas = _synced_canvas(session_id)
        emitted = canvas.on_pointer_up()
    except Exception as e:
        raise http_error(e)
    return _canvas_response(session_id, canvas, emitted)


@router.post("/{session_id}/canvas/pointer-leave", response_model=CanvasResponse)
def pointer_leave(session_id: str):
    try:
        canvas = _synced_canvas(session_id)
        emitted = canvas.on_pointer_leave()
    except Exception as e:
        raise http_error(e)
    return _canvas_response(session_id, canvas, emitted)


@router.post("/{session_id}/canvas/wheel", response_model=CanvasResponse)
def wheel(session_id: str, req: WheelRequest):
    try:
        canvas = _synced_canvas(session_id)
        canvas.on_wheel(req.delta_y)
    except Exception as e:
        raise http_error(e)
    return _canvas_response(session_id, canvas)


@router.post("/{session_id}/canvas/zoom", response_model=CanvasResponse)
def zoom(session_id: str, req: ZoomRequest):
    if req.direction not in ("in", "out"):
        raise http_error(ValueError(f"Zoom direction must be 'in' or 'out', got {req.direction!r}"))
    try:
        canvas = _synced_canvas(session_id)
        if req.direction == "in":
            canvas.zoom_in()
        else:
            canvas.zoom_out()
    except Exception as e:
        raise http_error(e)
    return _canvas_response(session_id, canvas)


@router.post("/{session_id}/canvas/fit", response_model=CanvasResponse)
def fit(session_id: str):
    try:
        canvas = _synced_canvas(session_id)
        canvas.fit()
    except Exception as e:
        raise http_error(e)
    return _canvas_response(session_id, canvas)


@router.get("/{session_id}/canvas/frame")
def frame(session_id: str):
    try:
        canvas = _synced_canvas(session_id)
        jpeg = canvas.encode_jpeg(ServiceLocator.config().jpeg_quality)
    except Exception as e:
        raise http_error(e)
    return Response(content=jpeg, media_type="image/jpeg", headers={"Cache-Control": "no-cache"})
