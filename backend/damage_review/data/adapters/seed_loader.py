import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from damage_review.core.utils.logger import get_logger
from damage_review.data.repositories.in_memory_damage_store import InMemoryDamageStore
from damage_review.domain.entities.bbox_entity import BoundingBox
from damage_review.domain.entities.damage_entity import (
    Damage,
    DamageImage,
    parse_severity,
    parse_status,
)
from damage_review.domain.errors import ReviewError

_logger = get_logger("seed_loader")


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        _logger.warning("Invalid timestamp ignored: %s", value)
        return None


def image_from_row(row: Dict[str, Any]) -> DamageImage:
    """Map a snake_case persistence row to a DamageImage."""
    return DamageImage(
        id=str(row["id"]),
        report_id=str(row["report_id"]),
        section_id=str(row["section_id"]),
        part_name=str(row["part_name"]),
        image_url=str(row["image_url"]),
        order_index=int(row.get("order_index", 0)),
        image_type=str(row.get("image_type", "damage")),
        width=int(row["width"]) if row.get("width") is not None else None,
        height=int(row["height"]) if row.get("height") is not None else None,
    )


def damage_from_row(row: Dict[str, Any]) -> Damage:
    bbox_val = row.get("bounding_box")
    if isinstance(bbox_val, dict):
        bbox = BoundingBox.from_dict(bbox_val)
    elif isinstance(bbox_val, list) and len(bbox_val) == 4:
        # [x1, y1, x2, y2] as emitted by detectors
        bbox = BoundingBox.from_corners(*[float(v) for v in bbox_val])
    else:
        raise ValueError(f"Damage {row.get('id')} has no usable bounding_box")

    damage = Damage(
        id=str(row["id"]),
        report_id=str(row["report_id"]),
        image_id=str(row["image_id"]),
        # rows without a group form a group of their own
        damage_group_id=str(row.get("damage_group_id") or uuid.uuid4()),
        section_id=str(row["section_id"]),
        part_name=str(row["part_name"]),
        bounding_box=bbox,
        location=str(row.get("location") or ""),
        damage_type=str(row.get("damage_type") or ""),
        severity=parse_severity(row.get("severity", 0)),
        status=parse_status(row.get("status", "pending")),
        confidence_score=float(row.get("confidence_score") or 0.0),
        reviewed_by=row.get("reviewed_by"),
        reviewed_at=_parse_timestamp(row.get("reviewed_at")),
        notes=str(row.get("notes") or ""),
    )
    created_at = _parse_timestamp(row.get("created_at"))
    if created_at is not None:
        damage = damage.apply({"created_at": created_at, "updated_at": _parse_timestamp(row.get("updated_at")) or created_at})
    return damage


def load_rows(payload: Dict[str, Any]) -> Tuple[List[DamageImage], List[Damage]]:
    images: List[DamageImage] = []
    damages: List[Damage] = []
    for row in payload.get("images", []):
        try:
            images.append(image_from_row(row))
        except (KeyError, TypeError, ValueError) as e:
            _logger.warning("Skipping invalid image row %s: %s", row.get("id") if isinstance(row, dict) else row, e)
    for row in payload.get("damages", []):
        try:
            damages.append(damage_from_row(row))
        except (KeyError, TypeError, ValueError, ReviewError) as e:
            _logger.warning("Skipping invalid damage row %s: %s", row.get("id") if isinstance(row, dict) else row, e)
    return images, damages


def seed_store(store: InMemoryDamageStore, path: Path) -> int:
    """Load a JSON seed file ({"images": [...], "damages": [...]}) into the store.

    Returns the number of damages loaded.
    """
    payload = json.loads(path.read_text(encoding="utf-8"))
    images, damages = load_rows(payload)
    for image in images:
        store.add_image(image)
    for damage in damages:
        store.add_damage(damage)
    _logger.info("Seeded store from %s: %d images, %d damages", path, len(images), len(damages))
    return len(damages)
