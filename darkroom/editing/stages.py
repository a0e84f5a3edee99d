"""Renderer-neutral description of the color pipeline.

``build_render_plan`` turns an :class:`AdjustmentState` into an ordered tuple
of typed stages. Any renderer (the Pillow one in :mod:`.render`, a shader, a
browser compositor) interprets the same plan. Stages whose parameters are
neutral are left out, so a default state yields an empty plan.

Stage groups run in this order: ``tone`` -> ``channel`` -> ``detail`` ->
``overlay``. ``highlights``, ``shadows`` and ``vibrance`` are carried in the
state but not consumed by any stage.
"""

from __future__ import annotations

import colorsys
import math
from dataclasses import asdict, dataclass
from typing import ClassVar, List, Tuple, Union

from ..config import SETTINGS
from .adjustments import AdjustmentState

Matrix3 = Tuple[Tuple[float, float, float], Tuple[float, float, float], Tuple[float, float, float]]

UNCONSUMED_FIELDS = ("highlights", "shadows", "vibrance")


@dataclass(frozen=True)
class Brightness:
    """Linear multiply of every channel."""

    amount: float
    kind: ClassVar[str] = "brightness"
    group: ClassVar[str] = "tone"


@dataclass(frozen=True)
class Contrast:
    """``out = (in - 0.5) * amount + 0.5`` on normalized channels."""

    amount: float
    kind: ClassVar[str] = "contrast"
    group: ClassVar[str] = "tone"


@dataclass(frozen=True)
class Saturate:
    amount: float
    kind: ClassVar[str] = "saturate"
    group: ClassVar[str] = "tone"

    def matrix(self) -> Matrix3:
        s = self.amount
        return (
            (0.213 + 0.787 * s, 0.715 - 0.715 * s, 0.072 - 0.072 * s),
            (0.213 - 0.213 * s, 0.715 + 0.285 * s, 0.072 - 0.072 * s),
            (0.213 - 0.213 * s, 0.715 - 0.715 * s, 0.072 + 0.928 * s),
        )


@dataclass(frozen=True)
class Sepia:
    amount: float
    kind: ClassVar[str] = "sepia"
    group: ClassVar[str] = "tone"

    def matrix(self) -> Matrix3:
        inv = 1.0 - min(1.0, self.amount)
        return (
            (0.393 + 0.607 * inv, 0.769 - 0.769 * inv, 0.189 - 0.189 * inv),
            (0.349 - 0.349 * inv, 0.686 + 0.314 * inv, 0.168 - 0.168 * inv),
            (0.272 - 0.272 * inv, 0.534 - 0.534 * inv, 0.131 + 0.869 * inv),
        )


@dataclass(frozen=True)
class HueRotate:
    degrees: float
    kind: ClassVar[str] = "hue_rotate"
    group: ClassVar[str] = "tone"

    def matrix(self) -> Matrix3:
        rad = math.radians(self.degrees)
        c, s = math.cos(rad), math.sin(rad)
        return (
            (0.213 + c * 0.787 - s * 0.213, 0.715 - c * 0.715 - s * 0.715, 0.072 - c * 0.072 + s * 0.928),
            (0.213 - c * 0.213 + s * 0.143, 0.715 + c * 0.285 + s * 0.140, 0.072 - c * 0.072 - s * 0.283),
            (0.213 - c * 0.213 - s * 0.787, 0.715 - c * 0.715 + s * 0.715, 0.072 + c * 0.928 + s * 0.072),
        )


@dataclass(frozen=True)
class Blur:
    """Gaussian blur; ``radius`` is the standard deviation in pixels."""

    radius: float
    kind: ClassVar[str] = "blur"
    group: ClassVar[str] = "tone"


@dataclass(frozen=True)
class ChannelMatrix:
    """Diagonal per-channel scale (channel mixer combined with temperature)."""

    red: float
    green: float
    blue: float
    kind: ClassVar[str] = "channel_matrix"
    group: ClassVar[str] = "channel"

    def matrix(self) -> Matrix3:
        return (
            (self.red, 0.0, 0.0),
            (0.0, self.green, 0.0),
            (0.0, 0.0, self.blue),
        )


@dataclass(frozen=True)
class Gamma:
    """``out = in ** exponent`` on normalized channels."""

    exponent: float
    kind: ClassVar[str] = "gamma"
    group: ClassVar[str] = "channel"


@dataclass(frozen=True)
class Sharpen:
    """Unsharp mask; ``amount`` 1.0 adds the full high-pass detail back once."""

    amount: float
    radius: float = 2.0
    kind: ClassVar[str] = "sharpen"
    group: ClassVar[str] = "detail"


@dataclass(frozen=True)
class Vignette:
    """Radial darkening.

    ``opacity`` is the black alpha at the corners; ``extent`` is how far in
    from the edge (as a fraction of the half-diagonal) the falloff reaches.
    """

    opacity: float
    extent: float
    kind: ClassVar[str] = "vignette"
    group: ClassVar[str] = "overlay"


@dataclass(frozen=True)
class Grain:
    opacity: float
    seed: int
    blend: str = "overlay"
    kind: ClassVar[str] = "grain"
    group: ClassVar[str] = "overlay"


@dataclass(frozen=True)
class SplitTone:
    """Solid HSL color composited over the image with ``blend`` at ``opacity``."""

    target: str
    hue: float
    saturation: float
    lightness: float
    opacity: float
    blend: str
    kind: ClassVar[str] = "split_tone"
    group: ClassVar[str] = "overlay"

    def rgb(self) -> Tuple[int, int, int]:
        r, g, b = colorsys.hls_to_rgb(
            (self.hue % 360) / 360.0, self.lightness / 100.0, self.saturation / 100.0
        )
        return int(round(r * 255)), int(round(g * 255)), int(round(b * 255))


RenderStage = Union[
    Brightness,
    Contrast,
    Saturate,
    Sepia,
    HueRotate,
    Blur,
    ChannelMatrix,
    Gamma,
    Sharpen,
    Vignette,
    Grain,
    SplitTone,
]
RenderPlan = Tuple[RenderStage, ...]


def temperature_weights(warmth: float) -> Tuple[float, float]:
    """Red and blue multipliers for the temperature slider."""
    value = warmth / 100.0
    if value > 0:
        return 1 + value * 0.2, 1 - value * 0.1
    return 1 - abs(value) * 0.1, 1 + abs(value) * 0.2


def _tone_stages(state: AdjustmentState) -> List[RenderStage]:
    stages: List[RenderStage] = []
    if state.exposure != 100:
        stages.append(Brightness(state.exposure / 100.0))
    if state.contrast != 100:
        stages.append(Contrast(state.contrast / 100.0))
    if state.saturation != 100:
        stages.append(Saturate(state.saturation / 100.0))
    if state.warmth > 0:
        stages.append(Sepia(state.warmth / 100.0))
    if state.tint != 0:
        stages.append(HueRotate(float(state.tint)))
    if state.blur > 0:
        stages.append(Blur(float(state.blur)))
    return stages


def _channel_stages(state: AdjustmentState) -> List[RenderStage]:
    stages: List[RenderStage] = []
    r_weight, b_weight = temperature_weights(state.warmth)
    scales = ChannelMatrix(
        red=state.red_channel / 100.0 * r_weight,
        green=state.green_channel / 100.0,
        blue=state.blue_channel / 100.0 * b_weight,
    )
    if (scales.red, scales.green, scales.blue) != (1.0, 1.0, 1.0):
        stages.append(scales)
    if state.gamma != 1.0:
        stages.append(Gamma(1.0 / state.gamma))
    return stages


def _overlay_stages(state: AdjustmentState, grain_seed: int) -> List[RenderStage]:
    stages: List[RenderStage] = []
    if state.vignette > 0:
        stages.append(Vignette(opacity=state.vignette / 150.0, extent=state.vignette / 100.0))
    if state.grain > 0:
        stages.append(Grain(opacity=state.grain / 100.0, seed=grain_seed))
    if state.highlights_sat > 0:
        stages.append(
            SplitTone(
                target="highlights",
                hue=float(state.highlights_hue),
                saturation=float(state.highlights_sat),
                lightness=50.0,
                opacity=state.highlights_sat / 200.0,
                blend="overlay",
            )
        )
    if state.shadows_sat > 0:
        stages.append(
            SplitTone(
                target="shadows",
                hue=float(state.shadows_hue),
                saturation=float(state.shadows_sat),
                lightness=50.0,
                opacity=state.shadows_sat / 150.0,
                blend="soft-light",
            )
        )
    return stages


def build_render_plan(state: AdjustmentState, grain_seed: int | None = None) -> RenderPlan:
    seed = SETTINGS.grain_seed if grain_seed is None else grain_seed
    stages = _tone_stages(state) + _channel_stages(state)
    if state.sharpen > 0:
        stages.append(Sharpen(amount=state.sharpen / 50.0))
    stages.extend(_overlay_stages(state, seed))
    return tuple(stages)


def describe_plan(plan: RenderPlan) -> List[dict]:
    """JSON-ready view of a plan, one dict per stage in order."""
    described = []
    for stage in plan:
        entry = {"kind": stage.kind, "group": stage.group}
        entry.update(asdict(stage))
        described.append(entry)
    return described
