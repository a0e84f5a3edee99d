from __future__ import annotations

import math
import random
from functools import lru_cache
from typing import Callable, Dict, List, Type

from PIL import Image, ImageChops, ImageFilter

from .adjustments import AdjustmentState
from .images import SourceImage
from .stages import (
    Blur,
    Brightness,
    ChannelMatrix,
    Contrast,
    Gamma,
    Grain,
    HueRotate,
    Matrix3,
    RenderPlan,
    Saturate,
    Sepia,
    Sharpen,
    SplitTone,
    Vignette,
    build_render_plan,
)


def _lut(fn: Callable[[float], float]) -> List[int]:
    table = [min(255, max(0, int(fn(value / 255.0) * 255 + 0.5))) for value in range(256)]
    return table * 3


def apply_matrix(img: Image.Image, matrix: Matrix3) -> Image.Image:
    (a, b, c), (d, e, f), (g, h, i) = matrix
    return img.convert("RGB", (a, b, c, 0.0, d, e, f, 0.0, g, h, i, 0.0))


def apply_gamma(img: Image.Image, exponent: float) -> Image.Image:
    if abs(exponent - 1.0) < 1e-3:
        return img
    return img.point(_lut(lambda v: v ** exponent))


def _brightness(img: Image.Image, stage: Brightness) -> Image.Image:
    return img.point(_lut(lambda v: v * stage.amount))


def _contrast(img: Image.Image, stage: Contrast) -> Image.Image:
    return img.point(_lut(lambda v: (v - 0.5) * stage.amount + 0.5))


def _blur(img: Image.Image, stage: Blur) -> Image.Image:
    return img.filter(ImageFilter.GaussianBlur(stage.radius))


def _gamma(img: Image.Image, stage: Gamma) -> Image.Image:
    return apply_gamma(img, stage.exponent)


def _matrix_stage(img: Image.Image, stage) -> Image.Image:
    return apply_matrix(img, stage.matrix())


def _sharpen(img: Image.Image, stage: Sharpen) -> Image.Image:
    percent = int(round(stage.amount * 100))
    return img.filter(ImageFilter.UnsharpMask(radius=stage.radius, percent=percent, threshold=0))


@lru_cache(maxsize=1)
def _corner_distance() -> Image.Image:
    """256x256 field of distance from the center, 255 at the corners."""
    size = 256
    center = (size - 1) / 2.0
    reach = math.hypot(center, center)
    field = Image.new("L", (size, size))
    field.putdata(
        [
            int(round(255 * math.hypot(x - center, y - center) / reach))
            for y in range(size)
            for x in range(size)
        ]
    )
    return field


def _vignette(img: Image.Image, stage: Vignette) -> Image.Image:
    start = 1.0 - stage.extent
    lut = []
    for value in range(256):
        distance = value / 255.0
        if distance <= start or stage.extent <= 0:
            lut.append(0)
            continue
        ramp = min(1.0, (distance - start) / stage.extent)
        lut.append(int(round(255 * stage.opacity * ramp)))
    mask = _corner_distance().resize(img.size, Image.Resampling.BILINEAR).point(lut)
    black = Image.new("RGB", img.size, (0, 0, 0))
    return Image.composite(black, img, mask)


def grain_texture(size, seed: int) -> Image.Image:
    width, height = size
    rng = random.Random(seed)
    return Image.frombytes("L", (width, height), rng.randbytes(width * height)).convert("RGB")


def _grain(img: Image.Image, stage: Grain) -> Image.Image:
    blended = ImageChops.overlay(img, grain_texture(img.size, stage.seed))
    return Image.blend(img, blended, stage.opacity)


def _split_tone(img: Image.Image, stage: SplitTone) -> Image.Image:
    color = Image.new("RGB", img.size, stage.rgb())
    if stage.blend == "soft-light":
        blended = ImageChops.soft_light(img, color)
    else:
        blended = ImageChops.overlay(img, color)
    return Image.blend(img, blended, min(1.0, stage.opacity))


_STAGE_RENDERERS: Dict[Type, Callable] = {
    Brightness: _brightness,
    Contrast: _contrast,
    Saturate: _matrix_stage,
    Sepia: _matrix_stage,
    HueRotate: _matrix_stage,
    Blur: _blur,
    ChannelMatrix: _matrix_stage,
    Gamma: _gamma,
    Sharpen: _sharpen,
    Vignette: _vignette,
    Grain: _grain,
    SplitTone: _split_tone,
}


def render_plan(img: Image.Image, plan: RenderPlan) -> Image.Image:
    """Interpret ``plan`` against ``img``; the input image is never modified."""
    out = img.convert("RGB")
    for stage in plan:
        out = _STAGE_RENDERERS[type(stage)](out, stage)
    return out


def render(img: Image.Image, state: AdjustmentState, grain_seed: int | None = None) -> Image.Image:
    return render_plan(img, build_render_plan(state, grain_seed=grain_seed))


def render_source(source: SourceImage, state: AdjustmentState) -> Image.Image:
    return render(source.open(), state)


def render_preview(source: SourceImage, state: AdjustmentState, max_edge: int) -> Image.Image:
    """Render a downscaled copy whose longest edge is at most ``max_edge``."""
    img = source.open()
    if max_edge > 0 and max(img.size) > max_edge:
        img = img.convert("RGB")
        img.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)
    return render(img, state)
