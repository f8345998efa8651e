from dataclasses import dataclass
from typing import Any, Dict, Tuple

from damage_review.domain.errors import InvalidBoundingBox


# Smallest accepted box side, in image pixels
MIN_BOX_SIZE = 10.0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned damage box.

    Coordinates are in pixel space of the original image, never in
    viewport units.
    """
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_corners(cls, ax: float, ay: float, bx: float, by: float) -> "BoundingBox":
        """Normalized box spanning two corner points in any drag direction."""
        return cls(x=min(ax, bx), y=min(ay, by), width=abs(bx - ax), height=abs(by - ay))

    def exceeds(self, min_size: float = MIN_BOX_SIZE) -> bool:
        return self.width > min_size and self.height > min_size

    def validate(self, min_size: float = MIN_BOX_SIZE) -> "BoundingBox":
        if self.width <= 0 or self.height <= 0:
            raise InvalidBoundingBox(f"Box dimensions must be positive, got {self.width}x{self.height}")
        if not self.exceeds(min_size):
            raise InvalidBoundingBox(
                f"Box {self.width:.1f}x{self.height:.1f} is not larger than the minimum size {min_size}"
            )
        return self

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def to_xyxy(self) -> Tuple[int, int, int, int]:
        return (
            int(round(self.x)),
            int(round(self.y)),
            int(round(self.x + self.width)),
            int(round(self.y + self.height)),
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "BoundingBox":
        return cls(
            x=float(payload.get("x", 0)),
            y=float(payload.get("y", 0)),
            width=float(payload.get("width", 0)),
            height=float(payload.get("height", 0)),
        )
