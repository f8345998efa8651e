from typing import List

from fastapi import APIRouter
from pydantic import BaseModel

from damage_review.core.di.service_locator import ServiceLocator
from damage_review.core.utils.logger import get_logger
from damage_review.domain.entities.recap_entity import LOCATION_LABELS, LOCATION_ORDER, DamageRecap, severity_legend
from damage_review.presentation.api.v1.damage_router import DamageResponse, damage_response
from damage_review.presentation.api.v1.errors import http_error


router = APIRouter(prefix="/api/v1/recap", tags=["recap"])
logger = get_logger("recap_router")


class RecapPartResponse(BaseModel):
    name: str
    location: str
    max_severity: int
    damage_count: int
    color: str
    damages: List[DamageResponse]


class LocationGroupResponse(BaseModel):
    location: str
    label: str
    parts: List[str]


class LegendEntryResponse(BaseModel):
    severity: int
    label: str
    color: str


class RecapResponse(BaseModel):
    report_id: str
    total_damages: int
    affected_parts: int
    severe_damages: int
    parts: List[RecapPartResponse]
    locations: List[LocationGroupResponse]
    legend: List[LegendEntryResponse]
    # True once the review workflow finished this report and handed it off
    handed_off: bool = False


class ConfirmRequest(BaseModel):
    reviewer_id: str


class ConfirmResponse(BaseModel):
    report_id: str
    manual_review_completed: bool


def recap_response(recap: DamageRecap, handed_off: bool = False) -> RecapResponse:
    return RecapResponse(
        report_id=recap.report_id,
        handed_off=handed_off,
        total_damages=recap.total_damages,
        affected_parts=recap.affected_parts,
        severe_damages=recap.severe_damages,
        parts=[
            RecapPartResponse(
                name=p.name,
                location=p.location.value,
                max_severity=p.max_severity,
                damage_count=p.damage_count,
                color=p.color,
                damages=[damage_response(d) for d in p.damages],
            )
            for p in recap.parts
        ],
        locations=[
            LocationGroupResponse(
                location=location.value,
                label=LOCATION_LABELS[location],
                parts=[p.name for p in recap.by_location[location]],
            )
            for location in LOCATION_ORDER
            if recap.by_location[location]
        ],
        legend=[LegendEntryResponse(severity=e.severity, label=e.label, color=e.color) for e in severity_legend()],
    )


@router.get("/{report_id}", response_model=RecapResponse)
async def get_recap(report_id: str):
    try:
        recap = await ServiceLocator.recap().load(report_id)
    except Exception as e:
        raise http_error(e)
    return recap_response(recap, handed_off=ServiceLocator.completed_reports.get(report_id, False))


@router.post("/{report_id}/confirm", response_model=ConfirmResponse)
async def confirm_recap(report_id: str, req: ConfirmRequest):
    try:
        await ServiceLocator.recap().confirm(report_id, req.reviewer_id)
    except Exception as e:
        raise http_error(e)
    ServiceLocator.completed_reports.pop(report_id, None)
    logger.info("Report %s confirmed by %s", report_id, req.reviewer_id)
    return ConfirmResponse(report_id=report_id, manual_review_completed=True)
