"""Parametric correction state shared by the renderer, presets and history."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields, replace
from typing import Dict, Mapping, Tuple

from ..errors import ValidationError

Number = float

RANGES: Dict[str, Tuple[float, float]] = {
    "exposure": (50, 150),
    "contrast": (50, 150),
    "highlights": (50, 150),
    "shadows": (50, 150),
    "gamma": (0.1, 2.5),
    "saturation": (0, 200),
    "vibrance": (0, 200),
    "warmth": (-100, 100),
    "tint": (-180, 180),
    "blur": (0, 20),
    "vignette": (0, 100),
    "grain": (0, 100),
    "sharpen": (0, 100),
    "red_channel": (0, 200),
    "green_channel": (0, 200),
    "blue_channel": (0, 200),
    "highlights_hue": (0, 360),
    "shadows_hue": (0, 360),
    "highlights_sat": (0, 100),
    "shadows_sat": (0, 100),
}

# camelCase names used by the web client and the style inference service.
WIRE_NAMES: Dict[str, str] = {
    "red_channel": "redChannel",
    "green_channel": "greenChannel",
    "blue_channel": "blueChannel",
    "highlights_hue": "highlightsHue",
    "shadows_hue": "shadowsHue",
    "highlights_sat": "highlightsSat",
    "shadows_sat": "shadowsSat",
}
_ALIASES: Dict[str, str] = {wire: name for name, wire in WIRE_NAMES.items()}


def canonical_name(key: str) -> str:
    name = _ALIASES.get(key, key)
    if name not in RANGES:
        raise ValidationError(f"Unknown adjustment: {key}")
    return name


def clamp(name: str, value: object) -> Number:
    """Coerce ``value`` to a number and clamp it into the range of ``name``."""

    if isinstance(value, bool):
        raise ValidationError(f"Expected a number for {name}, got {value!r}")
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise ValidationError(f"Expected a number for {name}, got {value!r}") from None
    if isinstance(number, float) and math.isnan(number):
        raise ValidationError(f"{name} must not be NaN")
    low, high = RANGES[name]
    return max(low, min(high, number))


def normalize_delta(values: Mapping[str, object]) -> Dict[str, Number]:
    """Map a partial state (either naming style) onto clamped canonical fields."""

    normalized: Dict[str, Number] = {}
    for key, value in values.items():
        name = canonical_name(key)
        normalized[name] = clamp(name, value)
    return normalized


@dataclass(frozen=True)
class AdjustmentState:
    # Light
    exposure: Number = 100
    contrast: Number = 100
    highlights: Number = 100
    shadows: Number = 100
    gamma: Number = 1.0

    # Color
    saturation: Number = 100
    vibrance: Number = 100
    warmth: Number = 0
    tint: Number = 0

    # Detail & effects
    blur: Number = 0
    vignette: Number = 0
    grain: Number = 0
    sharpen: Number = 0

    # Channel mixer
    red_channel: Number = 100
    green_channel: Number = 100
    blue_channel: Number = 100

    # Split toning
    highlights_hue: Number = 0
    shadows_hue: Number = 0
    highlights_sat: Number = 0
    shadows_sat: Number = 0

    def __post_init__(self) -> None:
        for field in fields(self):
            object.__setattr__(self, field.name, clamp(field.name, getattr(self, field.name)))

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "AdjustmentState":
        """Defaults overlaid by ``values``."""
        return cls(**normalize_delta(values))

    def with_value(self, name: str, value: object) -> "AdjustmentState":
        key = canonical_name(name)
        return replace(self, **{key: clamp(key, value)})

    def merged(self, delta: Mapping[str, object]) -> "AdjustmentState":
        """This state overlaid by ``delta``; untouched fields keep their values."""
        return replace(self, **normalize_delta(delta))

    def diff(self) -> Dict[str, Number]:
        return {
            name: value
            for name, value in self.to_dict().items()
            if value != getattr(DEFAULTS, name)
        }

    @property
    def is_default(self) -> bool:
        return self == DEFAULTS

    def to_dict(self) -> Dict[str, Number]:
        return asdict(self)

    def to_wire(self) -> Dict[str, Number]:
        return {WIRE_NAMES.get(name, name): value for name, value in self.to_dict().items()}


DEFAULTS = AdjustmentState()
