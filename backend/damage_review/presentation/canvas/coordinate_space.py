from dataclasses import dataclass, replace
from typing import Tuple

from damage_review.domain.entities.bbox_entity import BoundingBox


Point = Tuple[float, float]

ZOOM_MIN = 0.1
ZOOM_MAX = 5.0


def clamp_scale(scale: float, zoom_min: float = ZOOM_MIN, zoom_max: float = ZOOM_MAX) -> float:
    return max(zoom_min, min(zoom_max, scale))


@dataclass(frozen=True)
class CoordinateSpace:
    """Screen <-> image pixel mapping.

    offset is the screen position of the image's top-left corner; scale is
    screen pixels per image pixel.
    """
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def __post_init__(self) -> None:
        if self.scale <= 0:
            raise ValueError(f"Scale must be positive, got {self.scale}")

    @property
    def offset(self) -> Point:
        return self.offset_x, self.offset_y

    def to_image(self, point: Point) -> Point:
        sx, sy = point
        return (sx - self.offset_x) / self.scale, (sy - self.offset_y) / self.scale

    def to_screen(self, point: Point) -> Point:
        ix, iy = point
        return self.offset_x + ix * self.scale, self.offset_y + iy * self.scale

    def box_to_screen(self, box: BoundingBox) -> BoundingBox:
        x, y = self.to_screen((box.x, box.y))
        return BoundingBox(x=x, y=y, width=box.width * self.scale, height=box.height * self.scale)

    def zoomed(self, delta: float, zoom_min: float = ZOOM_MIN, zoom_max: float = ZOOM_MAX) -> "CoordinateSpace":
        """Additive zoom around the current pan; the offset is left untouched."""
        return replace(self, scale=clamp_scale(self.scale + delta, zoom_min, zoom_max))

    def panned_to(self, offset: Point) -> "CoordinateSpace":
        return replace(self, offset_x=offset[0], offset_y=offset[1])

    @classmethod
    def fit_to_container(
        cls, image_width: float, image_height: float, container_width: float, container_height: float
    ) -> "CoordinateSpace":
        """Largest scale <= 1 showing the whole image, centered in the container."""
        if image_width <= 0 or image_height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {image_width}x{image_height}")
        scale = min(container_width / image_width, container_height / image_height, 1.0)
        return cls(
            scale=scale,
            offset_x=(container_width - image_width * scale) / 2,
            offset_y=(container_height - image_height * scale) / 2,
        )
