"""Single-flight coordination of the pixel-changing edit operations.

At most one of generative edit, upscale and style match runs per session.
A second trigger is rejected with :class:`BusyError` rather than queued.
Every operation goes through :meth:`EditOrchestrator._run`, which always
releases the busy flag. Operations assign the working image, adjustments
and history only after they have succeeded, so a failure changes nothing
and slider or mask edits made during the flight are kept.
"""

from __future__ import annotations

import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Mapping, Optional, Protocol, Tuple

from PIL import Image

from ..config import SETTINGS, EditorSettings
from ..errors import (
    BusyError,
    EditorError,
    ResourceError,
    ServiceError,
    ValidationError,
)
from .adjustments import AdjustmentState
from .history import Version
from .images import SourceImage
from .session import EditingSession

logger = logging.getLogger(__name__)

IMAGE_SCOPE = "image"
SELECTION_SCOPE = "selection"
SCOPES = (IMAGE_SCOPE, SELECTION_SCOPE)

COMMITTED = "committed"
UNCHANGED = "unchanged"
FAILED = "failed"
REJECTED = "rejected"

QUICK_ACTIONS = {
    "Remove BG": "Remove background",
    "B&W": "Make it black and white high contrast",
    "Cinematic": "Cinematic teal and orange lighting",
}

CommitSink = Callable[[Version], object]


class EditService(Protocol):
    def edit_image(self, prompt: str, image: SourceImage, mask: bytes | None = None) -> bytes: ...


class StyleService(Protocol):
    def generate_adjustments(
        self, prompt: str, reference: SourceImage | None = None
    ) -> Mapping[str, object]: ...


@dataclass(frozen=True)
class EditResult:
    operation: str
    status: str
    version: Optional[Version] = None
    adjustments: Optional[AdjustmentState] = None
    error: Optional[EditorError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "status": self.status,
            "version": self.version.to_dict() if self.version else None,
            "adjustments": self.adjustments.to_dict() if self.adjustments else None,
            "error": {"kind": self.error.kind, "message": str(self.error)} if self.error else None,
        }


def upscale_dimensions(width: int, height: int, target_pixels: int) -> Tuple[int, int]:
    """Scale ``width``x``height`` toward ``target_pixels``; never shrinks."""
    scale = max(1.0, math.sqrt(target_pixels / float(width * height)))
    return int(width * scale), int(height * scale)


def upscale_label(target_pixels: int) -> str:
    return f"Upscale ({target_pixels / 1_000_000:g}MP)"


def resolve_quick_action(name: str) -> Tuple[str, str]:
    for label, prompt in QUICK_ACTIONS.items():
        if label.lower() == name.lower():
            return label, prompt
    raise ValidationError(f"Unknown quick action: {name}")


class EditOrchestrator:
    def __init__(
        self,
        session: EditingSession,
        edit_service: EditService | None = None,
        style_service: StyleService | None = None,
        settings: EditorSettings = SETTINGS,
    ) -> None:
        self.session = session
        self.edit_service = edit_service
        self.style_service = style_service
        self.settings = settings
        self._flight = threading.Lock()
        self._active_operation: Optional[str] = None
        self._sinks: List[CommitSink] = []

    @property
    def busy(self) -> bool:
        return self._flight.locked()

    @property
    def active_operation(self) -> Optional[str]:
        return self._active_operation

    def on_commit(self, sink: CommitSink) -> CommitSink:
        self._sinks.append(sink)
        return sink

    def _notify(self, version: Version) -> None:
        for sink in list(self._sinks):
            try:
                sink(version)
            except Exception:
                logger.exception("Commit sink %r failed for version %s", sink, version.id)

    @contextmanager
    def exclusive(self, operation: str) -> Iterator[None]:
        """Hold the flight lock for ``operation``; raise :class:`BusyError` if taken."""
        if not self._flight.acquire(blocking=False):
            raise BusyError(f"Cannot start {operation}: {self._active_operation} is in flight")
        self._active_operation = operation
        try:
            yield
        finally:
            self._active_operation = None
            self._flight.release()

    def _run(self, operation: str, work: Callable[[], EditResult]) -> EditResult:
        try:
            with self.exclusive(operation):
                result = work()
        except BusyError as exc:
            logger.warning("%s", exc)
            return EditResult(operation, REJECTED, error=exc)
        except ValidationError as exc:
            logger.warning("%s rejected: %s", operation, exc)
            return EditResult(operation, REJECTED, error=exc)
        except EditorError as exc:
            logger.error("%s failed (%s): %s", operation, exc.kind, exc)
            return EditResult(operation, FAILED, error=exc)

        if result.version is not None:
            self._notify(result.version)
        return result

    def load_image(self, image: SourceImage, display_size: Tuple[int, int] | None = None) -> Version:
        """Replace the session's image; refused while an edit is in flight."""
        with self.exclusive("load_image"):
            return self.session.load_image(image, display_size)

    # -- generative edit -------------------------------------------------

    def generative_edit(
        self, prompt: str, scope: str = IMAGE_SCOPE, label: str | None = None
    ) -> EditResult:
        def work() -> EditResult:
            text = (prompt or "").strip()
            if not text:
                raise ValidationError("Edit prompt must not be empty")
            if scope not in SCOPES:
                raise ValidationError(f"Unknown edit scope: {scope}")
            image = self.session.require_image()

            mask = None
            if scope == SELECTION_SCOPE:
                if not self.session.has_mask:
                    raise ValidationError("Selection edit requires a painted mask")
                mask = self.session.require_mask().export(size=image.size)

            if self.edit_service is None:
                raise ServiceError("No generative edit service configured")
            payload = self.edit_service.edit_image(text, image, mask)
            if not payload:
                raise ServiceError("Edit service returned no image")
            try:
                edited = SourceImage.from_bytes(payload)
            except ValidationError as exc:
                raise ServiceError(f"Edit service returned an unreadable image: {exc}") from exc

            default_label = "Generative Fill (Selection)" if mask is not None else "Generative Fill"
            version = self.session.commit(label or default_label, edited)
            if scope == SELECTION_SCOPE:
                self.session.clear_mask()
            return EditResult("generative_edit", COMMITTED, version, self.session.adjustments)

        return self._run("generative_edit", work)

    def quick_action(self, name: str, scope: str = IMAGE_SCOPE) -> EditResult:
        try:
            label, prompt = resolve_quick_action(name)
        except ValidationError as exc:
            logger.warning("quick action rejected: %s", exc)
            return EditResult("generative_edit", REJECTED, error=exc)
        return self.generative_edit(prompt, scope=scope, label=label)

    # -- upscale ---------------------------------------------------------

    def upscale(self) -> EditResult:
        target = self.settings.upscale_target_pixels

        def work() -> EditResult:
            image = self.session.require_image()
            size = upscale_dimensions(image.width, image.height, target)
            if size == image.size:
                logger.info("Image %s already at %dx%d, not upscaling", image.display_id, *size)
                return EditResult("upscale", UNCHANGED, adjustments=self.session.adjustments)
            try:
                resampled = image.open().resize(size, Image.Resampling.LANCZOS)
            except (MemoryError, ValueError, OSError) as exc:
                raise ResourceError(f"Could not resample to {size[0]}x{size[1]}: {exc}") from exc
            upscaled = SourceImage.from_image(resampled, image.mime_type)
            version = self.session.commit(upscale_label(target), upscaled)
            return EditResult("upscale", COMMITTED, version, self.session.adjustments)

        return self._run("upscale", work)

    # -- style match -----------------------------------------------------

    def style_match(self, prompt: str = "", reference: SourceImage | None = None) -> EditResult:
        def work() -> EditResult:
            text = (prompt or "").strip()
            if not text and reference is None:
                raise ValidationError("Style match needs a prompt or a reference image")
            if self.style_service is None:
                raise ServiceError("No style inference service configured")
            delta = self.style_service.generate_adjustments(text, reference)
            if not isinstance(delta, Mapping):
                raise ServiceError("Style service returned no adjustments")
            try:
                merged = self.session.adjustments.merged(delta)
            except ValidationError as exc:
                raise ServiceError(f"Style service returned invalid adjustments: {exc}") from exc
            self.session.adjustments = merged
            return EditResult("style_match", COMMITTED, adjustments=merged)

        return self._run("style_match", work)
