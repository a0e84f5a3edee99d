import io
import threading
from dataclasses import replace

import pytest
from PIL import Image

from darkroom.config import SETTINGS
from darkroom.editing.images import SourceImage
from darkroom.editing.orchestrator import EditOrchestrator
from darkroom.editing.session import EditingSession
from darkroom.errors import ServiceError


def png_bytes(size=(8, 6), color=(120, 90, 60)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, "PNG")
    return buffer.getvalue()


class FakeEditService:
    def __init__(self, color=(10, 200, 30), fail: bool = False) -> None:
        self.color = color
        self.fail = fail
        self.calls = []

    def edit_image(self, prompt, image, mask=None):
        self.calls.append((prompt, image, mask))
        if self.fail:
            raise ServiceError("edit service unavailable")
        # Vary the output per call so every edit yields a new image identity.
        r, g, b = self.color
        return png_bytes(image.size, (r, g, (b + len(self.calls)) % 256))


class BlockingEditService(FakeEditService):
    def __init__(self, fail: bool = False) -> None:
        super().__init__(fail=fail)
        self.started = threading.Event()
        self.release = threading.Event()

    def edit_image(self, prompt, image, mask=None):
        self.started.set()
        self.release.wait(5)
        return super().edit_image(prompt, image, mask)


class FakeStyleService:
    def __init__(self, delta=None) -> None:
        self.delta = delta if delta is not None else {"warmth": 35, "contrast": 120}
        self.calls = []

    def generate_adjustments(self, prompt, reference=None):
        self.calls.append((prompt, reference))
        return self.delta


@pytest.fixture
def source() -> SourceImage:
    return SourceImage(png_bytes(), "image/png")


@pytest.fixture
def session(source) -> EditingSession:
    return EditingSession(source)


@pytest.fixture
def edit_service() -> FakeEditService:
    return FakeEditService()


@pytest.fixture
def style_service() -> FakeStyleService:
    return FakeStyleService()


@pytest.fixture
def small_target_settings():
    return replace(SETTINGS, upscale_target_pixels=192)


@pytest.fixture
def orchestrator(session, edit_service, style_service, small_target_settings) -> EditOrchestrator:
    return EditOrchestrator(session, edit_service, style_service, settings=small_target_settings)


@pytest.fixture
def make_source():
    def make(color=(0, 0, 0), size=(8, 6)) -> SourceImage:
        return SourceImage(png_bytes(size, color), "image/png")

    return make
