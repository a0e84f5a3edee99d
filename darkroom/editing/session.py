from __future__ import annotations

import logging
from typing import Mapping, Optional, Tuple

from ..config import SETTINGS, EditorSettings
from ..errors import ValidationError
from .adjustments import DEFAULTS, AdjustmentState
from .history import HistoryStore, Version
from .images import SourceImage
from .masking import MaskSurface
from .presets import PresetEngine

logger = logging.getLogger(__name__)


class EditingSession:
    """Everything one editing session owns: working image, sliders, mask, history."""

    def __init__(
        self,
        image: SourceImage | None = None,
        *,
        presets: PresetEngine | None = None,
        settings: EditorSettings = SETTINGS,
    ) -> None:
        self.settings = settings
        self.presets = presets or PresetEngine.with_builtins()
        self.history = HistoryStore()
        self.image: Optional[SourceImage] = None
        self.adjustments: AdjustmentState = DEFAULTS
        self.mask: Optional[MaskSurface] = None
        if image is not None:
            self.load_image(image)

    # -- image & history -------------------------------------------------

    def load_image(self, image: SourceImage, display_size: Tuple[int, int] | None = None) -> Version:
        """Make ``image`` the working image with a fresh history, sliders and mask.

        The mask surface is allocated first, so an invalid display size
        leaves the session exactly as it was.
        """
        width, height = display_size or image.size
        mask = MaskSurface(
            width,
            height,
            brush_size=self.settings.brush_size,
            opacity=self.settings.mask_opacity,
        )
        self.image = image
        self.adjustments = DEFAULTS
        self.mask = mask
        logger.info("Loaded image %s (%dx%d)", image.display_id, image.width, image.height)
        return self.history.start(image, self.adjustments)

    def require_image(self) -> SourceImage:
        if self.image is None:
            raise ValidationError("No image loaded")
        return self.image

    def commit(self, label: str, image: SourceImage) -> Version:
        version = self.history.commit(label, image, self.adjustments)
        self.image = image
        return version

    def select_version(self, version_id: str) -> Version:
        version = self.history.get(version_id)
        self.image = version.source_image
        self.adjustments = version.adjustments
        return version

    @property
    def active_version(self) -> Optional[Version]:
        if self.image is None:
            return None
        for version in self.history.versions:
            if self.history.is_active(version, self.image, self.adjustments):
                return version
        return None

    # -- adjustments -----------------------------------------------------

    def set_adjustment(self, name: str, value: object) -> AdjustmentState:
        self.adjustments = self.adjustments.with_value(name, value)
        return self.adjustments

    def update_adjustments(self, values: Mapping[str, object]) -> AdjustmentState:
        self.adjustments = self.adjustments.merged(values)
        return self.adjustments

    def reset_adjustments(self) -> AdjustmentState:
        self.adjustments = DEFAULTS
        return self.adjustments

    def apply_preset(self, name: str) -> AdjustmentState:
        self.adjustments = self.presets.apply(name)
        return self.adjustments

    def auto_enhance(self) -> AdjustmentState:
        self.adjustments = self.presets.auto_enhance()
        return self.adjustments

    # -- mask ------------------------------------------------------------

    def require_mask(self) -> MaskSurface:
        if self.mask is None:
            raise ValidationError("No image loaded")
        return self.mask

    @property
    def has_mask(self) -> bool:
        return self.mask is not None and self.mask.has_mask

    def clear_mask(self) -> None:
        if self.mask is not None:
            self.mask.clear()

    def set_display_size(self, width: int, height: int) -> None:
        self.require_mask().resize(width, height)
