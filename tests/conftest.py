"""Shared fixtures: a two-section report seeded into the in-memory store."""

from pathlib import Path
from typing import Optional

import cv2
import numpy as np
import pytest

from damage_review.data.repositories.in_memory_damage_store import InMemoryDamageStore
from damage_review.domain.entities.bbox_entity import BoundingBox
from damage_review.domain.entities.damage_entity import Damage, DamageImage
from damage_review.domain.usecases.completion_usecase import CompletionAggregator
from damage_review.domain.usecases.damage_status_usecase import DamageStatusMachine
from damage_review.domain.usecases.review_navigator_usecase import ReviewNavigator
from damage_review.domain.usecases.review_workflow_usecase import ReviewWorkflow

REPORT_ID = "report-1"
REVIEWER_ID = "reviewer-1"

BODY = "exterior-body"
TIRES = "tires"
HOOD = "Hood"
DOOR = "Front Left Door"
TIRE = "Front Left Tire"

IMAGE_WIDTH = 400
IMAGE_HEIGHT = 300


def make_damage(
    damage_id: str,
    image_id: str,
    section_id: str,
    part_name: str,
    severity: int = 3,
    group: Optional[str] = None,
    box: Optional[BoundingBox] = None,
) -> Damage:
    return Damage(
        id=damage_id,
        report_id=REPORT_ID,
        image_id=image_id,
        damage_group_id=group or f"group-{damage_id}",
        section_id=section_id,
        part_name=part_name,
        bounding_box=box or BoundingBox(x=50, y=50, width=100, height=80),
        damage_type="Dent",
        severity=severity,
        confidence_score=0.87,
    )


def build_store(image_dir: Optional[Path] = None) -> InMemoryDamageStore:
    """Hood (2 images, 3 damages), Front Left Door (1 damage), Front Left Tire (1 damage)."""
    store = InMemoryDamageStore()

    def url(image_id: str) -> str:
        if image_dir is None:
            return f"https://images.example.com/{image_id}.jpg"
        return str(image_dir / f"{image_id}.jpg")

    for image_id, section_id, part_name, order in (
        ("img-hood-1", BODY, HOOD, 0),
        ("img-hood-2", BODY, HOOD, 1),
        ("img-door", BODY, DOOR, 0),
        ("img-tire", TIRES, TIRE, 0),
    ):
        store.add_image(DamageImage(image_id, REPORT_ID, section_id, part_name, url(image_id), order_index=order))

    store.add_damage(make_damage("d1", "img-hood-1", BODY, HOOD, severity=4, group="g-hood",
                                 box=BoundingBox(x=20, y=20, width=100, height=100)))
    store.add_damage(make_damage("d2", "img-hood-1", BODY, HOOD, severity=2,
                                 box=BoundingBox(x=200, y=150, width=120, height=90)))
    store.add_damage(make_damage("d3", "img-hood-2", BODY, HOOD, severity=5, group="g-hood"))
    store.add_damage(make_damage("d4", "img-door", BODY, DOOR, severity=3))
    store.add_damage(make_damage("d5", "img-tire", TIRES, TIRE, severity=1))
    return store


def write_images(image_dir: Path) -> None:
    for image_id in ("img-hood-1", "img-hood-2", "img-door", "img-tire"):
        raster = np.full((IMAGE_HEIGHT, IMAGE_WIDTH, 3), 128, dtype=np.uint8)
        cv2.imwrite(str(image_dir / f"{image_id}.jpg"), raster)


def build_workflow(store: InMemoryDamageStore, on_report_complete=None) -> ReviewWorkflow:
    aggregator = CompletionAggregator(store)
    return ReviewWorkflow(
        store=store,
        status_machine=DamageStatusMachine(store),
        aggregator=aggregator,
        navigator=ReviewNavigator(aggregator),
        on_report_complete=on_report_complete,
    )


@pytest.fixture
def store() -> InMemoryDamageStore:
    return build_store()


@pytest.fixture
def workflow(store: InMemoryDamageStore) -> ReviewWorkflow:
    return build_workflow(store)
