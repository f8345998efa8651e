from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from damage_review.core.di.service_locator import ServiceLocator
from damage_review.core.utils.logger import get_logger
from damage_review.domain.entities.bbox_entity import BoundingBox
from damage_review.domain.entities.damage_entity import (
    SEVERITY_COLORS,
    SEVERITY_LABELS,
    STATUS_BORDER_COLORS,
    STATUS_LABELS,
    Damage,
    DamageDraft,
    severity_color,
    severity_label,
)
from damage_review.domain.entities.vehicle_catalog import (
    DAMAGE_LOCATIONS,
    SECTION_PARTS,
    damage_types_for_section,
    ordered_section_ids,
    section_name,
)
from damage_review.presentation.api.v1.errors import http_error


router = APIRouter(prefix="/api/v1/damages", tags=["damages"])
logger = get_logger("damage_router")


class BoundingBoxModel(BaseModel):
    x: float
    y: float
    width: float
    height: float


class DamageResponse(BaseModel):
    id: str
    report_id: str
    image_id: str
    damage_group_id: str
    section_id: str
    part_name: str
    bounding_box: BoundingBoxModel
    location: str
    damage_type: str
    severity: int
    severity_label: str
    color: str
    status: str
    status_label: str
    confidence_score: float
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    notes: str = ""


class CreateDamageRequest(BaseModel):
    reviewer_id: str
    report_id: str
    image_id: str
    section_id: str
    part_name: str
    bounding_box: BoundingBoxModel
    location: str = ""
    damage_type: str = ""
    severity: int = 3
    status: str = "validated"
    damage_group_id: Optional[str] = None
    notes: str = ""


class UpdateDamageRequest(BaseModel):
    reviewer_id: str
    changes: Dict[str, Any]


class StatusRequest(BaseModel):
    reviewer_id: str
    status: str
    notes: Optional[str] = None


def damage_response(damage: Damage) -> DamageResponse:
    return DamageResponse(
        id=damage.id,
        report_id=damage.report_id,
        image_id=damage.image_id,
        damage_group_id=damage.damage_group_id,
        section_id=damage.section_id,
        part_name=damage.part_name,
        bounding_box=BoundingBoxModel(**damage.bounding_box.to_dict()),
        location=damage.location,
        damage_type=damage.damage_type,
        severity=damage.severity,
        severity_label=severity_label(damage.severity),
        color=severity_color(damage.severity),
        status=damage.status.value,
        status_label=STATUS_LABELS[damage.status],
        confidence_score=damage.confidence_score,
        reviewed_by=damage.reviewed_by,
        reviewed_at=damage.reviewed_at,
        notes=damage.notes,
    )


# Declared before /{damage_id} so "catalog" is not taken for an id
@router.get("/catalog")
def catalog():
    """Form options: sections with their parts, locations and damage types."""
    sections = [
        {
            "id": section_id,
            "name": section_name(section_id),
            "parts": list(SECTION_PARTS[section_id]),
            "damage_types": list(damage_types_for_section(section_id)),
        }
        for section_id in ordered_section_ids(SECTION_PARTS)
    ]
    return {
        "sections": sections,
        "locations": list(DAMAGE_LOCATIONS),
        "severities": [
            {"value": s, "label": label, "color": SEVERITY_COLORS[s]} for s, label in SEVERITY_LABELS.items()
        ],
        "statuses": [
            {"value": status.value, "label": label, "color": STATUS_BORDER_COLORS[status]}
            for status, label in STATUS_LABELS.items()
        ],
    }


@router.get("/report/{report_id}", response_model=List[DamageResponse])
async def list_damages(report_id: str, section_id: Optional[str] = None, part_name: Optional[str] = None):
    try:
        damages = await ServiceLocator.store().get_damages(report_id, section_id, part_name)
    except Exception as e:
        raise http_error(e)
    return [damage_response(d) for d in damages]


@router.get("/groups/{damage_group_id}", response_model=List[DamageResponse])
async def get_group(damage_group_id: str):
    try:
        damages = await ServiceLocator.store().get_damages_by_group(damage_group_id)
    except Exception as e:
        raise http_error(e)
    return [damage_response(d) for d in damages]


@router.post("/groups/{damage_group_id}/status", response_model=List[DamageResponse])
async def set_group_status(damage_group_id: str, req: StatusRequest):
    try:
        updated = await ServiceLocator.status_machine().set_group_status(damage_group_id, req.status, req.reviewer_id)
    except Exception as e:
        raise http_error(e)
    return [damage_response(d) for d in updated]


@router.post("", response_model=DamageResponse, status_code=201)
async def create_damage(req: CreateDamageRequest):
    draft = DamageDraft(
        report_id=req.report_id,
        image_id=req.image_id,
        section_id=req.section_id,
        part_name=req.part_name,
        bounding_box=BoundingBox(
            x=req.bounding_box.x, y=req.bounding_box.y, width=req.bounding_box.width, height=req.bounding_box.height
        ),
        location=req.location,
        damage_type=req.damage_type,
        severity=req.severity,
        status=req.status,
        damage_group_id=req.damage_group_id,
        notes=req.notes,
    )
    try:
        created = await ServiceLocator.status_machine().create_damage(draft, req.reviewer_id)
    except Exception as e:
        raise http_error(e)
    logger.info("Damage %s created by %s", created.id, req.reviewer_id)
    return damage_response(created)


@router.get("/{damage_id}", response_model=DamageResponse)
async def get_damage(damage_id: str):
    try:
        damage = await ServiceLocator.store().get_damage(damage_id)
    except Exception as e:
        raise http_error(e)
    return damage_response(damage)


@router.patch("/{damage_id}", response_model=DamageResponse)
async def update_damage(damage_id: str, req: UpdateDamageRequest):
    try:
        updated = await ServiceLocator.status_machine().update_damage(damage_id, req.changes, req.reviewer_id)
    except Exception as e:
        raise http_error(e)
    return damage_response(updated)


@router.post("/{damage_id}/status", response_model=DamageResponse)
async def set_status(damage_id: str, req: StatusRequest):
    try:
        updated = await ServiceLocator.status_machine().set_status(damage_id, req.status, req.reviewer_id, req.notes)
    except Exception as e:
        raise http_error(e)
    return damage_response(updated)


@router.delete("/{damage_id}", status_code=204)
async def delete_damage(damage_id: str):
    try:
        await ServiceLocator.status_machine().delete_damage(damage_id)
    except Exception as e:
        raise http_error(e)
