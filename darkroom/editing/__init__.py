"""Non-destructive editing core: adjustments, rendering, masks, history, edits."""

from .adjustments import DEFAULTS, RANGES, AdjustmentState
from .history import HistoryStore, Version
from .images import SourceImage
from .masking import ERASE, NONE, PAINT, MaskSurface, PillowRasterizer, Rasterizer, Stroke
from .orchestrator import (
    QUICK_ACTIONS,
    EditOrchestrator,
    EditResult,
    EditService,
    StyleService,
    upscale_dimensions,
)
from .presets import AUTO_ENHANCE, Preset, PresetEngine, apply_preset
from .render import render, render_plan, render_preview, render_source
from .session import EditingSession
from .stages import RenderStage, build_render_plan, describe_plan

__all__ = [
    "DEFAULTS",
    "RANGES",
    "AdjustmentState",
    "HistoryStore",
    "Version",
    "SourceImage",
    "ERASE",
    "NONE",
    "PAINT",
    "MaskSurface",
    "PillowRasterizer",
    "Rasterizer",
    "Stroke",
    "QUICK_ACTIONS",
    "EditOrchestrator",
    "EditResult",
    "EditService",
    "StyleService",
    "upscale_dimensions",
    "AUTO_ENHANCE",
    "Preset",
    "PresetEngine",
    "apply_preset",
    "render",
    "render_plan",
    "render_preview",
    "render_source",
    "EditingSession",
    "RenderStage",
    "build_render_plan",
    "describe_plan",
]
