from __future__ import annotations

import base64
import binascii
import logging

from flask import Flask, jsonify, request

from .config import SETTINGS, configure_logging
from .editing.adjustments import canonical_name
from .editing.history import Version
from .editing.images import SourceImage
from .editing.orchestrator import EditOrchestrator, EditResult
from .editing.render import render_preview
from .editing.session import EditingSession
from .editing.stages import UNCONSUMED_FIELDS, build_render_plan, describe_plan
from .errors import EditorError, ValidationError
from .infrastructure.cache import ResponseCache, preview_key
from .infrastructure.responses import encode_png, send_bytes, send_png
from .infrastructure.services import GeminiEditClient, GeminiStyleClient

APP_VERSION = "0.1.0"

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "validation": 400,
    "busy": 409,
    "service": 502,
    "resource": 500,
}


def _error_body(exc: EditorError) -> dict:
    return {"error": {"kind": exc.kind, "message": str(exc)}}


def _result_response(result: EditResult):
    status = ERROR_STATUS.get(result.error.kind, 500) if result.error else 200
    return jsonify(result.to_dict()), status


def _payload() -> dict:
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object")
    return payload


def _decode_reference(payload: dict) -> SourceImage | None:
    encoded = payload.get("reference")
    if not encoded:
        return None
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError, TypeError):
        raise ValidationError("reference must be base64 encoded image data") from None
    return SourceImage.from_bytes(data, payload.get("reference_mime_type"))


def _default_orchestrator(session: EditingSession) -> EditOrchestrator:
    edit_service = style_service = None
    if SETTINGS.api_key:
        edit_service = GeminiEditClient()
        style_service = GeminiStyleClient()
    else:
        logger.warning("No API key configured; generative edit and style match are unavailable")
    return EditOrchestrator(session, edit_service, style_service)


def create_app(
    session: EditingSession | None = None,
    orchestrator: EditOrchestrator | None = None,
    cache: ResponseCache | None = None,
) -> Flask:
    configure_logging()
    app = Flask(__name__)

    if orchestrator is None:
        orchestrator = _default_orchestrator(session or EditingSession())
    session = orchestrator.session
    previews = cache if cache is not None else ResponseCache()

    @orchestrator.on_commit
    def log_commit(version: Version) -> None:
        logger.info("Version %s committed: %s", version.id, version.label)

    app.extensions["darkroom"] = {"session": session, "orchestrator": orchestrator, "cache": previews}

    @app.errorhandler(EditorError)
    def editor_error(exc: EditorError):
        return jsonify(_error_body(exc)), ERROR_STATUS.get(exc.kind, 500)

    def history_view() -> dict:
        active = session.active_version
        return {
            "versions": [
                dict(version.to_dict(), active=active is not None and version.id == active.id)
                for version in session.history.versions
            ],
            "active": active.id if active else None,
        }

    def mask_view() -> dict:
        mask = session.require_mask()
        return {
            "has_mask": mask.has_mask,
            "mode": mask.mode,
            "brush_size": mask.brush_size,
            "width": mask.size[0],
            "height": mask.size[1],
            "strokes": len(mask.strokes),
        }

    @app.route("/health")
    def health():
        return jsonify(
            ok=True,
            version=APP_VERSION,
            busy=orchestrator.busy,
            operation=orchestrator.active_operation,
            image=session.image.describe() if session.image else None,
            versions=len(session.history),
        )

    @app.route("/image", methods=["GET", "POST"])
    def image():
        if request.method == "GET":
            current = session.require_image()
            return send_bytes(current.data, current.mime_type)

        upload = request.files.get("file")
        if upload is not None:
            data, mime_type = upload.read(), upload.mimetype
        else:
            data, mime_type = request.get_data(), request.mimetype
        if mime_type and not mime_type.startswith("image/"):
            mime_type = None
        loaded = SourceImage.from_bytes(data, mime_type)

        display_size = None
        if request.args.get("width") or request.args.get("height"):
            display_size = (
                _integer(request.args.get("width"), "width"),
                _integer(request.args.get("height"), "height"),
            )
        baseline = orchestrator.load_image(loaded, display_size)
        return jsonify(version=baseline.to_dict()), 201

    @app.route("/preview")
    def preview():
        current = session.require_image()
        max_edge = request.args.get("max_edge", SETTINGS.preview_max_edge, type=int)
        key = preview_key(current.display_id, session.adjustments, max_edge)
        cached = previews.get(key)
        if cached is None:
            cached = encode_png(render_preview(current, session.adjustments, max_edge))
            previews.put(key, cached)
        return send_png(cached)

    @app.route("/render-plan")
    def render_plan_view():
        plan = build_render_plan(session.adjustments)
        return jsonify(stages=describe_plan(plan), unconsumed=list(UNCONSUMED_FIELDS))

    @app.route("/adjustments", methods=["GET", "PATCH"])
    def adjustments():
        if request.method == "GET":
            return jsonify(session.adjustments.to_dict())

        payload = _payload()
        errors: dict[str, str] = {}
        applied: dict[str, object] = {}
        for name, value in payload.items():
            try:
                state = session.set_adjustment(name, value)
            except ValidationError as exc:
                errors[name] = str(exc)
                continue
            field = canonical_name(name)
            applied[field] = getattr(state, field)

        status = 400 if errors else 200
        return (
            jsonify(updated=applied, errors=errors, adjustments=session.adjustments.to_dict()),
            status,
        )

    @app.route("/adjustments/reset", methods=["POST"])
    def reset_adjustments():
        return jsonify(session.reset_adjustments().to_dict())

    @app.route("/presets")
    def presets():
        return jsonify(presets=[preset.to_dict() for preset in session.presets])

    @app.route("/presets/<name>", methods=["POST"])
    def apply_preset(name: str):
        return jsonify(session.apply_preset(name).to_dict())

    @app.route("/auto-enhance", methods=["POST"])
    def auto_enhance():
        return jsonify(session.auto_enhance().to_dict())

    @app.route("/history")
    def history():
        return jsonify(history_view())

    @app.route("/history/<version_id>/select", methods=["POST"])
    def select_version(version_id: str):
        session.select_version(version_id)
        return jsonify(history_view())

    @app.route("/mask", methods=["GET", "PATCH", "DELETE"])
    def mask():
        if request.method == "DELETE":
            session.clear_mask()
        elif request.method == "PATCH":
            payload = _payload()
            surface = session.require_mask()
            if "mode" in payload:
                surface.set_mode(str(payload["mode"]))
            if "brush_size" in payload:
                surface.set_brush_size(_number(payload["brush_size"], "brush_size"))
        return jsonify(mask_view())

    @app.route("/mask/strokes", methods=["POST"])
    def add_stroke():
        payload = _payload()
        surface = session.require_mask()
        if "mode" in payload:
            surface.set_mode(str(payload["mode"]))
        if "brush_size" in payload:
            surface.set_brush_size(_number(payload["brush_size"], "brush_size"))
        points = [_point(item) for item in payload.get("points") or []]
        stroke = surface.paint(points)
        return jsonify(mask_view()), 201 if stroke is not None else 200

    @app.route("/mask/resize", methods=["POST"])
    def resize_mask():
        payload = _payload()
        session.set_display_size(
            int(_number(payload.get("width"), "width")),
            int(_number(payload.get("height"), "height")),
        )
        return jsonify(mask_view())

    @app.route("/mask.png")
    def mask_png():
        return send_png(session.require_mask().export())

    @app.route("/edit", methods=["POST"])
    def edit():
        payload = _payload()
        result = orchestrator.generative_edit(
            str(payload.get("prompt") or ""),
            scope=str(payload.get("scope") or "image"),
            label=payload.get("label"),
        )
        return _result_response(result)

    @app.route("/quick-actions/<name>", methods=["POST"])
    def quick_action(name: str):
        payload = _payload()
        return _result_response(orchestrator.quick_action(name, scope=str(payload.get("scope") or "image")))

    @app.route("/upscale", methods=["POST"])
    def upscale():
        return _result_response(orchestrator.upscale())

    @app.route("/style-match", methods=["POST"])
    def style_match():
        payload = _payload()
        reference = _decode_reference(payload)
        return _result_response(orchestrator.style_match(str(payload.get("prompt") or ""), reference))

    return app


def _number(value: object, name: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number") from None


def _integer(value: object, name: str) -> int:
    try:
        return int(str(value))
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None


def _point(item: object):
    if isinstance(item, dict):
        item = (item.get("x"), item.get("y"))
    if not isinstance(item, (list, tuple)) or len(item) != 2:
        raise ValidationError("Stroke points must be [x, y] pairs")
    return _number(item[0], "x"), _number(item[1], "y")


# Module-level application for WSGI servers (``darkroom.app:app``).
app = create_app()
application = app
