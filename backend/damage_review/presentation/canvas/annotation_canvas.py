from typing import Callable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from damage_review.core.utils.logger import get_logger
from damage_review.domain.entities.bbox_entity import MIN_BOX_SIZE, BoundingBox
from damage_review.domain.entities.damage_entity import Damage, severity_color
from damage_review.presentation.canvas.coordinate_space import ZOOM_MAX, ZOOM_MIN, CoordinateSpace, Point

_logger = get_logger("annotation_canvas")

BACKGROUND_COLOR = "#111827"
DRAW_COLOR = "#3B82F6"
BADGE_SIZE = 24
SELECTED_FILL_ALPHA = 0x20 / 0xFF
DASH_LENGTH = 5

Color = Tuple[int, int, int]


def hex_to_bgr(value: str) -> Color:
    value = value.lstrip("#")
    r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    return b, g, r


def _dashed_line(frame: np.ndarray, p1: Point, p2: Point, color: Color, thickness: int) -> None:
    (x1, y1), (x2, y2) = p1, p2
    length = float(np.hypot(x2 - x1, y2 - y1))
    if length == 0:
        return
    steps = int(length // DASH_LENGTH)
    for i in range(0, steps + 1, 2):
        start = i * DASH_LENGTH / length
        end = min((i + 1) * DASH_LENGTH / length, 1.0)
        a = (int(round(x1 + (x2 - x1) * start)), int(round(y1 + (y2 - y1) * start)))
        b = (int(round(x1 + (x2 - x1) * end)), int(round(y1 + (y2 - y1) * end)))
        cv2.line(frame, a, b, color, thickness)


def draw_dashed_rect(frame: np.ndarray, box: BoundingBox, color: Color, thickness: int = 2) -> None:
    x1, y1, x2, y2 = box.x, box.y, box.x + box.width, box.y + box.height
    for p1, p2 in (((x1, y1), (x2, y1)), ((x2, y1), (x2, y2)), ((x2, y2), (x1, y2)), ((x1, y2), (x1, y1))):
        _dashed_line(frame, p1, p2, color, thickness)


class AnnotationCanvas:
    """Headless image viewer with damage overlays.

    Pointer and wheel handlers mutate zoom/pan and draw-gesture state and
    fire on_damage_selected / on_draw_complete; render() produces a BGR
    frame of the viewport.
    """

    def __init__(
        self,
        width: int,
        height: int,
        on_damage_selected: Optional[Callable[[Damage], None]] = None,
        on_draw_complete: Optional[Callable[[BoundingBox], None]] = None,
        min_box_size: float = MIN_BOX_SIZE,
        zoom_min: float = ZOOM_MIN,
        zoom_max: float = ZOOM_MAX,
        wheel_step: float = 0.1,
        button_step: float = 0.2,
    ) -> None:
        self.width = width
        self.height = height
        self.on_damage_selected = on_damage_selected
        self.on_draw_complete = on_draw_complete
        self._min_box_size = min_box_size
        self._zoom_min = zoom_min
        self._zoom_max = zoom_max
        self._wheel_step = wheel_step
        self._button_step = button_step

        self.space = CoordinateSpace()
        self.is_panning = False
        self.pan_anchor: Optional[Point] = None
        self.draw_anchor: Optional[Point] = None
        self.live_box: Optional[BoundingBox] = None

        self.image: Optional[np.ndarray] = None
        self.image_id: Optional[str] = None
        self.damages: List[Damage] = []
        self.selected_damage_id: Optional[str] = None
        self.is_drawing_mode = False

    # Scene

    @property
    def image_size(self) -> Optional[Tuple[int, int]]:
        if self.image is None:
            return None
        height, width = self.image.shape[:2]
        return width, height

    @property
    def scale(self) -> float:
        return self.space.scale

    @property
    def offset(self) -> Point:
        return self.space.offset

    @property
    def zoom_percent(self) -> int:
        return int(round(self.space.scale * 100))

    def set_image(self, raster: np.ndarray, image_id: Optional[str] = None) -> None:
        self.image = raster
        self.image_id = image_id
        self._cancel_gestures()
        self.fit()

    def clear_image(self) -> None:
        self.image = None
        self.image_id = None
        self._cancel_gestures()

    def set_damages(self, damages: Sequence[Damage], selected_damage_id: Optional[str] = None) -> None:
        self.damages = list(damages)
        self.selected_damage_id = selected_damage_id

    def set_drawing_mode(self, enabled: bool) -> None:
        self.is_drawing_mode = enabled
        self._cancel_gestures()

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height

    def fit(self) -> None:
        size = self.image_size
        if size is None:
            return
        self.space = CoordinateSpace.fit_to_container(size[0], size[1], self.width, self.height)

    def zoom(self, delta: float) -> None:
        self.space = self.space.zoomed(delta, self._zoom_min, self._zoom_max)

    def zoom_in(self) -> None:
        self.zoom(self._button_step)

    def zoom_out(self) -> None:
        self.zoom(-self._button_step)

    def _cancel_gestures(self) -> None:
        self.is_panning = False
        self.pan_anchor = None
        self.draw_anchor = None
        self.live_box = None

    # Pointer input

    def hit_test(self, point: Point) -> Optional[Damage]:
        """First damage, in render order, whose screen rectangle contains the point."""
        for damage in self.damages:
            if self.space.box_to_screen(damage.bounding_box).contains(*point):
                return damage
        return None

    def on_pointer_down(self, point: Point) -> None:
        if self.is_drawing_mode:
            ix, iy = self.space.to_image(point)
            self.draw_anchor = (ix, iy)
            self.live_box = BoundingBox(x=ix, y=iy, width=0, height=0)
            return

        damage = self.hit_test(point)
        if damage is not None:
            self.selected_damage_id = damage.id
            if self.on_damage_selected is not None:
                self.on_damage_selected(damage)
            return

        self.is_panning = True
        self.pan_anchor = (point[0] - self.space.offset_x, point[1] - self.space.offset_y)

    def on_pointer_move(self, point: Point) -> None:
        if self.is_drawing_mode and self.draw_anchor is not None:
            ix, iy = self.space.to_image(point)
            self.live_box = BoundingBox.from_corners(self.draw_anchor[0], self.draw_anchor[1], ix, iy)
        elif self.is_panning and self.pan_anchor is not None:
            self.space = self.space.panned_to((point[0] - self.pan_anchor[0], point[1] - self.pan_anchor[1]))

    def on_pointer_up(self) -> Optional[BoundingBox]:
        """Finish the gesture; returns the emitted box, if any."""
        emitted: Optional[BoundingBox] = None
        if self.live_box is not None and self.draw_anchor is not None:
            if self.live_box.exceeds(self._min_box_size):
                emitted = self.live_box
                if self.on_draw_complete is not None:
                    self.on_draw_complete(emitted)
            else:
                _logger.debug("Dropped box under minimum size: %s", self.live_box)
        self._cancel_gestures()
        return emitted

    def on_pointer_leave(self) -> Optional[BoundingBox]:
        return self.on_pointer_up()

    def on_wheel(self, delta_y: float) -> None:
        if delta_y > 0:
            self.zoom(-self._wheel_step)
        elif delta_y < 0:
            self.zoom(self._wheel_step)

    # Rendering

    def render(self) -> np.ndarray:
        frame = np.empty((self.height, self.width, 3), dtype=np.uint8)
        frame[:] = hex_to_bgr(BACKGROUND_COLOR)

        if self.image is not None:
            matrix = np.float32([[self.space.scale, 0, self.space.offset_x], [0, self.space.scale, self.space.offset_y]])
            cv2.warpAffine(
                self.image,
                matrix,
                (self.width, self.height),
                dst=frame,
                flags=cv2.INTER_LINEAR,
                borderMode=cv2.BORDER_TRANSPARENT,
            )

        for damage in self.damages:
            self._draw_damage(frame, damage)

        if self.live_box is not None and self.is_drawing_mode:
            draw_dashed_rect(frame, self.space.box_to_screen(self.live_box), hex_to_bgr(DRAW_COLOR), 2)
        return frame

    def _draw_damage(self, frame: np.ndarray, damage: Damage) -> None:
        x1, y1, x2, y2 = self.space.box_to_screen(damage.bounding_box).to_xyxy()
        color = hex_to_bgr(severity_color(damage.severity))
        is_selected = damage.id == self.selected_damage_id

        if is_selected:
            overlay = frame.copy()
            cv2.rectangle(overlay, (x1, y1), (x2, y2), color, -1)
            cv2.addWeighted(overlay, SELECTED_FILL_ALPHA, frame, 1 - SELECTED_FILL_ALPHA, 0, frame)
        cv2.rectangle(frame, (x1, y1), (x2, y2), color, 4 if is_selected else 2)

        # severity badge sits above the box's top-left corner
        cv2.rectangle(frame, (x1, y1 - BADGE_SIZE), (x1 + BADGE_SIZE, y1), color, -1)
        label = str(damage.severity)
        (tw, th), _ = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, 0.5, 2)
        origin = (x1 + (BADGE_SIZE - tw) // 2, y1 - (BADGE_SIZE - th) // 2)
        cv2.putText(frame, label, origin, cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 2)

    def encode_jpeg(self, quality: int = 85) -> bytes:
        ok, buf = cv2.imencode(".jpg", self.render(), [int(cv2.IMWRITE_JPEG_QUALITY), quality])
        if not ok:
            raise RuntimeError("Failed to encode canvas frame")
        return buf.tobytes()
