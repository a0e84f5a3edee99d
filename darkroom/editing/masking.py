"""Freehand selection mask painted over the displayed image.

Strokes are recorded in normalized coordinates (fractions of the display
width and height, brush diameter as a fraction of the display width), so a
display resize re-rasterizes the same selection instead of invalidating it.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Tuple

from PIL import Image, ImageDraw

from ..config import SETTINGS
from ..errors import ResourceError, ValidationError

logger = logging.getLogger(__name__)

PAINT = "paint"
ERASE = "erase"
NONE = "none"
MODES = (NONE, PAINT, ERASE)

Point = Tuple[float, float]
Size = Tuple[int, int]


class Rasterizer(Protocol):
    def new_buffer(self, size: Size): ...

    def draw_dot(self, buffer, center: Point, diameter: float, value: int) -> None: ...

    def draw_segment(self, buffer, start: Point, end: Point, diameter: float, value: int) -> None: ...


class PillowRasterizer:
    """Paints onto an ``L`` mode alpha buffer with round caps and joins."""

    def new_buffer(self, size: Size) -> Image.Image:
        width, height = size
        if width <= 0 or height <= 0:
            raise ResourceError(f"Invalid paint surface size {width}x{height}")
        try:
            return Image.new("L", (width, height), 0)
        except (MemoryError, ValueError) as exc:
            raise ResourceError(f"Could not allocate paint surface {width}x{height}: {exc}") from exc

    def draw_dot(self, buffer: Image.Image, center: Point, diameter: float, value: int) -> None:
        radius = max(0.5, diameter / 2.0)
        x, y = center
        ImageDraw.Draw(buffer).ellipse((x - radius, y - radius, x + radius, y + radius), fill=value)

    def draw_segment(
        self, buffer: Image.Image, start: Point, end: Point, diameter: float, value: int
    ) -> None:
        draw = ImageDraw.Draw(buffer)
        draw.line([start, end], fill=value, width=max(1, int(round(diameter))))
        self.draw_dot(buffer, start, diameter, value)
        self.draw_dot(buffer, end, diameter, value)


@dataclass(frozen=True)
class Stroke:
    mode: str
    diameter: float
    points: Tuple[Point, ...]


@dataclass
class _ActiveStroke:
    mode: str
    diameter: float
    points: List[Point] = field(default_factory=list)

    def freeze(self) -> Stroke:
        return Stroke(self.mode, self.diameter, tuple(self.points))


def _check_size(width: int, height: int) -> Size:
    if int(width) <= 0 or int(height) <= 0:
        raise ResourceError(f"Invalid display size {width}x{height}")
    return int(width), int(height)


class MaskSurface:
    def __init__(
        self,
        width: int,
        height: int,
        *,
        brush_size: float | None = None,
        mode: str = NONE,
        opacity: float | None = None,
        rasterizer: Rasterizer | None = None,
    ) -> None:
        self._size = _check_size(width, height)
        self._rasterizer = rasterizer or PillowRasterizer()
        self.brush_size = float(SETTINGS.brush_size if brush_size is None else brush_size)
        self.opacity = SETTINGS.mask_opacity if opacity is None else opacity
        self.has_mask = False
        self._strokes: List[Stroke] = []
        self._active: Optional[_ActiveStroke] = None
        self._buffer = None
        self.mode = NONE
        self.set_mode(mode)

    @property
    def size(self) -> Size:
        return self._size

    @property
    def strokes(self) -> Tuple[Stroke, ...]:
        return tuple(self._strokes)

    @property
    def is_painting(self) -> bool:
        return self._active is not None

    def set_mode(self, mode: str) -> None:
        if mode not in MODES:
            raise ValidationError(f"Unknown mask mode: {mode}")
        if mode == NONE and self._active is not None:
            self.end_stroke()
        self.mode = mode

    def set_brush_size(self, size: float) -> None:
        if size <= 0:
            raise ValidationError("Brush size must be positive")
        self.brush_size = float(size)

    def _normalize(self, point: Point) -> Point:
        width, height = self._size
        return point[0] / width, point[1] / height

    def _to_pixels(self, point: Point, size: Size) -> Point:
        return point[0] * size[0], point[1] * size[1]

    def _surface(self):
        if self._buffer is None:
            self._buffer = self._rasterizer.new_buffer(self._size)
        return self._buffer

    def begin_stroke(self, point: Point) -> bool:
        if self.mode == NONE:
            return False
        if self._active is not None:
            self.end_stroke()
        self._active = _ActiveStroke(self.mode, self.brush_size / self._size[0])
        normalized = self._normalize(point)
        self._active.points.append(normalized)
        self._rasterizer.draw_dot(self._surface(), point, self.brush_size, _value(self.mode))
        return True

    def extend_stroke(self, point: Point) -> bool:
        active = self._active
        if active is None:
            return False
        previous = self._to_pixels(active.points[-1], self._size)
        diameter = active.diameter * self._size[0]
        self._rasterizer.draw_segment(self._surface(), previous, point, diameter, _value(active.mode))
        active.points.append(self._normalize(point))
        return True

    def end_stroke(self) -> Optional[Stroke]:
        active = self._active
        if active is None:
            return None
        self._active = None
        stroke = active.freeze()
        self._strokes.append(stroke)
        self.has_mask = True
        return stroke

    def paint(self, points: Sequence[Point]) -> Optional[Stroke]:
        """Begin, extend and end one stroke through ``points``."""
        if not points or not self.begin_stroke(points[0]):
            return None
        for point in points[1:]:
            self.extend_stroke(point)
        return self.end_stroke()

    def clear(self) -> None:
        self._strokes = []
        self._active = None
        self._buffer = None
        self.has_mask = False

    def resize(self, width: int, height: int) -> None:
        """Adopt new display dimensions, keeping every stroke (the active one included)."""
        new_size = _check_size(width, height)
        if new_size == self._size:
            return
        logger.debug("Resizing mask surface %s -> %s", self._size, new_size)
        buffer = self.rasterize(new_size) if self._buffer is not None else None
        self._size = new_size
        self._buffer = buffer

    def _all_strokes(self) -> List[Stroke]:
        strokes = list(self._strokes)
        if self._active is not None:
            strokes.append(self._active.freeze())
        return strokes

    def rasterize(self, size: Size | None = None) -> Image.Image:
        target = _check_size(*(size or self._size))
        buffer = self._rasterizer.new_buffer(target)
        for stroke in self._all_strokes():
            diameter = stroke.diameter * target[0]
            value = _value(stroke.mode)
            points = [self._to_pixels(p, target) for p in stroke.points]
            self._rasterizer.draw_dot(buffer, points[0], diameter, value)
            for start, end in zip(points, points[1:]):
                self._rasterizer.draw_segment(buffer, start, end, diameter, value)
        return buffer

    def alpha(self) -> Image.Image:
        if self._buffer is None:
            return self._rasterizer.new_buffer(self._size)
        return self._buffer.copy()

    def export_image(self, size: Size | None = None) -> Image.Image:
        """Opaque black background with the strokes composited at ``opacity``."""
        alpha = self.rasterize(size)
        level = [int(round(value * self.opacity)) for value in range(256)]
        return alpha.point(level).convert("RGB")

    def export(self, size: Size | None = None) -> bytes:
        buffer = io.BytesIO()
        self.export_image(size).save(buffer, "PNG")
        return buffer.getvalue()


def _value(mode: str) -> int:
    return 255 if mode == PAINT else 0
