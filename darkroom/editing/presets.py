from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

from ..errors import ValidationError
from .adjustments import AdjustmentState, normalize_delta


@dataclass(frozen=True)
class Preset:
    name: str
    delta: Mapping[str, float]

    @property
    def slug(self) -> str:
        return slugify(self.name)

    def apply(self) -> AdjustmentState:
        """Defaults overlaid by the delta; whatever was set before is discarded."""
        return AdjustmentState.from_mapping(self.delta)

    def to_dict(self) -> dict:
        return {"name": self.name, "slug": self.slug, "delta": dict(self.delta)}


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


AUTO_ENHANCE = Preset(
    "Auto-Enhance",
    MappingProxyType(
        {
            "exposure": 108,
            "contrast": 110,
            "saturation": 105,
            "highlights": 90,
            "shadows": 110,
            "gamma": 1.05,
        }
    ),
)

_BUILTIN_LOOKS: Tuple[Tuple[str, Dict[str, float]], ...] = (
    ("Golden Hour", {"exposure": 105, "warmth": 20, "contrast": 110, "saturation": 110, "tint": -5}),
    ("Moody Matte", {"contrast": 90, "shadows": 115, "saturation": 85, "exposure": 95, "blur": 0}),
    ("Cyberpunk", {"tint": -20, "saturation": 130, "vibrance": 120, "contrast": 115, "highlights": 110}),
    ("B&W Noir", {"saturation": 0, "contrast": 135, "grain": 40, "vignette": 30, "exposure": 105}),
    ("Film Pop", {"contrast": 110, "saturation": 115, "grain": 15, "warmth": 5}),
    ("Ethereal", {"exposure": 110, "contrast": 95, "blur": 1, "saturation": 105, "warmth": -5}),
)


class PresetEngine:
    def __init__(self, presets: Tuple[Preset, ...] = ()) -> None:
        self._presets: Dict[str, Preset] = {}
        for preset in presets:
            self.register(preset.name, preset.delta)

    @classmethod
    def with_builtins(cls) -> "PresetEngine":
        engine = cls()
        for name, delta in _BUILTIN_LOOKS:
            engine.register(name, delta)
        return engine

    def register(self, name: str, delta: Mapping[str, object]) -> Preset:
        slug = slugify(name)
        if not slug:
            raise ValidationError("Preset name must not be empty")
        if slug in self._presets or slug == AUTO_ENHANCE.slug:
            raise ValidationError(f"Preset already registered: {name}")
        preset = Preset(name, MappingProxyType(normalize_delta(delta)))
        self._presets[slug] = preset
        return preset

    def get(self, name: str) -> Preset:
        slug = slugify(name)
        if slug == AUTO_ENHANCE.slug:
            return AUTO_ENHANCE
        try:
            return self._presets[slug]
        except KeyError:
            raise ValidationError(f"Unknown preset: {name}") from None

    def __iter__(self) -> Iterator[Preset]:
        return iter(self._presets.values())

    def __len__(self) -> int:
        return len(self._presets)

    def apply(self, name: str) -> AdjustmentState:
        return self.get(name).apply()

    def auto_enhance(self) -> AdjustmentState:
        return AUTO_ENHANCE.apply()


def apply_preset(delta: Mapping[str, object]) -> AdjustmentState:
    return AdjustmentState.from_mapping(delta)
