import io
import threading

import pytest
from PIL import Image

from darkroom.editing.adjustments import DEFAULTS
from darkroom.editing.images import SourceImage
from darkroom.editing.masking import PAINT
from darkroom.editing.orchestrator import (
    COMMITTED,
    FAILED,
    REJECTED,
    UNCHANGED,
    EditOrchestrator,
    resolve_quick_action,
    upscale_dimensions,
    upscale_label,
)
from darkroom.errors import BusyError, ServiceError, ValidationError

from conftest import BlockingEditService, FakeEditService, FakeStyleService


def _paint(session) -> None:
    mask = session.require_mask()
    mask.set_mode(PAINT)
    mask.paint([(1, 1), (4, 3)])


def test_upscale_dimensions_for_twelve_megapixels() -> None:
    assert upscale_dimensions(4000, 3000, 24_000_000) == (5656, 4242)


def test_upscale_never_downsamples() -> None:
    assert upscale_dimensions(6000, 4000, 24_000_000) == (6000, 4000)
    assert upscale_dimensions(8000, 6000, 24_000_000) == (8000, 6000)


def test_upscale_label() -> None:
    assert upscale_label(24_000_000) == "Upscale (24MP)"


def test_selection_edit_without_mask_is_rejected(orchestrator, session, edit_service) -> None:
    before = session.history.versions

    result = orchestrator.generative_edit("add neon sign", scope="selection")

    assert result.status == REJECTED
    assert isinstance(result.error, ValidationError)
    assert edit_service.calls == []
    assert session.history.versions == before
    with pytest.raises(ValidationError):
        result.raise_for_error()


def test_empty_prompt_is_rejected(orchestrator, edit_service) -> None:
    result = orchestrator.generative_edit("   ")

    assert result.status == REJECTED
    assert edit_service.calls == []


def test_sequential_edits_prepend_versions(orchestrator, session) -> None:
    baseline = session.history.baseline
    initial = len(session.history)

    first = orchestrator.generative_edit("add a rainbow")
    second = orchestrator.generative_edit("add a boat")

    assert first.status == second.status == COMMITTED
    versions = session.history.versions
    assert len(versions) == initial + 2
    assert versions[0] is second.version
    assert versions[1] is first.version
    assert versions[-1] is baseline
    assert baseline.label == "Original"
    assert session.image is second.version.source_image
    assert second.version.label == "Generative Fill"


def test_edit_snapshots_current_adjustments(orchestrator, session) -> None:
    session.set_adjustment("warmth", 40)

    result = orchestrator.generative_edit("make it dusk")

    assert result.version.adjustments.warmth == 40
    assert session.active_version is result.version


def test_selection_edit_sends_mask_and_clears_it(orchestrator, session, edit_service) -> None:
    session.set_display_size(16, 12)
    _paint(session)

    result = orchestrator.generative_edit("add neon sign", scope="selection")

    assert result.status == COMMITTED
    assert result.version.label == "Generative Fill (Selection)"
    prompt, image, mask = edit_service.calls[0]
    assert prompt == "add neon sign"
    assert mask is not None
    assert SourceImage.from_bytes(mask).size == image.size == (8, 6)
    assert session.has_mask is False


def test_failed_edit_leaves_state_identical(session, small_target_settings) -> None:
    service = FakeEditService(fail=True)
    orchestrator = EditOrchestrator(session, service, settings=small_target_settings)
    _paint(session)
    session.set_adjustment("grain", 25)
    image, adjustments = session.image, session.adjustments
    versions, strokes = session.history.versions, session.require_mask().strokes

    result = orchestrator.generative_edit("remove the car", scope="selection")

    assert result.status == FAILED
    assert isinstance(result.error, ServiceError)
    assert session.image is image
    assert session.image.data == image.data
    assert session.adjustments == adjustments
    assert session.history.versions == versions
    assert session.require_mask().strokes == strokes
    assert session.has_mask is True
    assert orchestrator.busy is False


def test_unreadable_service_payload_is_a_service_error(session) -> None:
    class GarbageService:
        def edit_image(self, prompt, image, mask=None):
            return b"not an image"

    orchestrator = EditOrchestrator(session, GarbageService())

    result = orchestrator.generative_edit("anything")

    assert result.status == FAILED
    assert isinstance(result.error, ServiceError)
    assert len(session.history) == 1


def test_missing_edit_service(session) -> None:
    result = EditOrchestrator(session).generative_edit("anything")

    assert result.status == FAILED
    assert isinstance(result.error, ServiceError)


def test_quick_action_uses_action_label(orchestrator, edit_service) -> None:
    result = orchestrator.quick_action("b&w")

    assert result.status == COMMITTED
    assert result.version.label == "B&W"
    assert edit_service.calls[0][0] == "Make it black and white high contrast"


def test_unknown_quick_action() -> None:
    with pytest.raises(ValidationError):
        resolve_quick_action("Sky Replace")


def test_upscale_commits_resampled_version(orchestrator, session) -> None:
    result = orchestrator.upscale()

    assert result.status == COMMITTED
    assert result.version.source_image.size == (16, 12)
    assert result.version.label == "Upscale (0.000192MP)"
    assert session.image.size == (16, 12)
    assert len(session.history) == 2


def test_upscale_at_target_is_unchanged(orchestrator, session) -> None:
    orchestrator.upscale()
    versions = session.history.versions

    result = orchestrator.upscale()

    assert result.status == UNCHANGED
    assert result.version is None
    assert session.history.versions == versions


def test_style_match_merges_partial_result(orchestrator, session, style_service) -> None:
    session.set_adjustment("grain", 30)

    result = orchestrator.style_match("warm summer film")

    assert result.status == COMMITTED
    assert result.version is None
    assert session.adjustments.grain == 30
    assert session.adjustments.warmth == 35
    assert session.adjustments.contrast == 120
    assert style_service.calls == [("warm summer film", None)]
    assert len(session.history) == 1


def test_style_match_needs_prompt_or_reference(orchestrator, style_service) -> None:
    result = orchestrator.style_match("")

    assert result.status == REJECTED
    assert style_service.calls == []


def test_style_match_invalid_result_keeps_state(session) -> None:
    orchestrator = EditOrchestrator(session, style_service=FakeStyleService({"exposure": "bright"}))

    result = orchestrator.style_match("anything")

    assert result.status == FAILED
    assert isinstance(result.error, ServiceError)
    assert session.adjustments == DEFAULTS


def test_busy_orchestrator_rejects_second_operation(session, small_target_settings) -> None:
    service = BlockingEditService()
    orchestrator = EditOrchestrator(session, service, FakeStyleService(), settings=small_target_settings)
    results = []
    worker = threading.Thread(target=lambda: results.append(orchestrator.generative_edit("slow edit")))
    worker.start()
    try:
        assert service.started.wait(5)
        assert orchestrator.busy
        assert orchestrator.active_operation == "generative_edit"
        before = session.history.versions

        upscale = orchestrator.upscale()
        style = orchestrator.style_match("anything")

        assert upscale.status == style.status == REJECTED
        assert isinstance(upscale.error, BusyError)
        assert session.history.versions == before
        assert session.image.size == (8, 6)
        assert session.adjustments == DEFAULTS

        # Local slider edits still work while the network call is pending.
        session.set_adjustment("exposure", 120)
    finally:
        service.release.set()
        worker.join(5)

    assert results[0].status == COMMITTED
    assert results[0].version.adjustments.exposure == 120
    assert orchestrator.busy is False


def test_commit_sinks_receive_new_versions(orchestrator) -> None:
    received = []

    @orchestrator.on_commit
    def sink(version):
        received.append(version)
        return "ignored"

    edit = orchestrator.generative_edit("add fog")
    orchestrator.style_match("moody")
    upscale = orchestrator.upscale()

    assert received == [edit.version, upscale.version]


def test_edit_result_to_dict(orchestrator) -> None:
    data = orchestrator.generative_edit("").to_dict()

    assert data["status"] == REJECTED
    assert data["error"]["kind"] == "validation"
    assert data["version"] is None


def test_upscale_keeps_jpeg_format(session, small_target_settings) -> None:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 6), (50, 60, 70)).save(buffer, "JPEG")
    session.load_image(SourceImage.from_bytes(buffer.getvalue()))
    orchestrator = EditOrchestrator(session, settings=small_target_settings)

    result = orchestrator.upscale()

    assert result.version.source_image.mime_type == "image/jpeg"


def test_failed_edit_keeps_changes_made_during_flight(session, small_target_settings) -> None:
    service = BlockingEditService(fail=True)
    orchestrator = EditOrchestrator(session, service, settings=small_target_settings)
    image, versions = session.image, session.history.versions
    results = []
    worker = threading.Thread(target=lambda: results.append(orchestrator.generative_edit("slow edit")))
    worker.start()
    try:
        assert service.started.wait(5)
        _paint(session)
        session.set_adjustment("exposure", 130)
    finally:
        service.release.set()
        worker.join(5)

    assert results[0].status == FAILED
    assert isinstance(results[0].error, ServiceError)
    assert len(session.require_mask().strokes) == 1
    assert session.has_mask is True
    assert session.adjustments.exposure == 130
    assert session.image is image
    assert session.history.versions == versions


def test_failing_commit_sink_does_not_undo_commit(orchestrator, session) -> None:
    received = []

    @orchestrator.on_commit
    def broken(version):
        raise RuntimeError("downstream unavailable")

    orchestrator.on_commit(received.append)

    result = orchestrator.generative_edit("add fog")

    assert result.status == COMMITTED
    assert session.history.latest is result.version
    assert session.image is result.version.source_image
    assert received == [result.version]
    assert orchestrator.busy is False


def test_load_image_is_refused_while_busy(session, make_source, small_target_settings) -> None:
    service = BlockingEditService()
    orchestrator = EditOrchestrator(session, service, settings=small_target_settings)
    worker = threading.Thread(target=lambda: orchestrator.generative_edit("slow edit"))
    worker.start()
    try:
        assert service.started.wait(5)
        with pytest.raises(BusyError):
            orchestrator.load_image(make_source((1, 2, 3)))
        assert len(session.history) == 1
    finally:
        service.release.set()
        worker.join(5)

    baseline = orchestrator.load_image(make_source((1, 2, 3)))
    assert session.history.versions == (baseline,)
    assert orchestrator.busy is False
