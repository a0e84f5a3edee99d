from __future__ import annotations

import base64
import json
import logging
from typing import Callable, Dict, List, Mapping

import requests

from ..config import SETTINGS, EditorSettings
from ..editing.adjustments import RANGES, WIRE_NAMES, canonical_name
from ..editing.images import SourceImage
from ..errors import ServiceError, ValidationError

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], requests.Session]

MASK_NOTE = (
    "The next image is a selection mask aligned with the photo. Only change the "
    "regions painted white; keep everything in the black area untouched."
)


def _inline_part(data: bytes, mime_type: str) -> dict:
    return {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode("ascii")}}


def _parts(payload: Mapping) -> List[dict]:
    parts: List[dict] = []
    for candidate in payload.get("candidates") or []:
        content = candidate.get("content") or {}
        parts.extend(content.get("parts") or [])
    return parts


class GeminiClient:
    """Minimal ``generateContent`` client. Failures surface as :class:`ServiceError`; no retries."""

    def __init__(
        self,
        model: str,
        *,
        session_factory: SessionFactory | None = None,
        settings: EditorSettings = SETTINGS,
    ) -> None:
        self.model = model
        self.settings = settings
        self._session_factory = session_factory or requests.Session
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = self._session_factory()
        session.headers.update({"User-Agent": "darkroom/0.1", "x-goog-api-key": self.settings.api_key})
        return session

    @property
    def endpoint(self) -> str:
        base = self.settings.service_base_url.rstrip("/")
        return f"{base}/models/{self.model}:generateContent"

    def generate(self, parts: List[dict], generation_config: Mapping | None = None) -> dict:
        body: Dict[str, object] = {"contents": [{"role": "user", "parts": parts}]}
        if generation_config:
            body["generationConfig"] = dict(generation_config)
        try:
            response = self._session.post(
                self.endpoint, json=body, timeout=self.settings.service_timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as exc:
            raise ServiceError(f"{self.model} request failed: {exc}") from exc
        except ValueError as exc:
            raise ServiceError(f"{self.model} returned a non-JSON response") from exc


class GeminiEditClient(GeminiClient):
    def __init__(
        self, model: str | None = None, *, settings: EditorSettings = SETTINGS, **kwargs
    ) -> None:
        super().__init__(model or settings.edit_model, settings=settings, **kwargs)

    def edit_image(self, prompt: str, image: SourceImage, mask: bytes | None = None) -> bytes:
        parts = [_inline_part(image.data, image.mime_type)]
        if mask is not None:
            parts.append({"text": MASK_NOTE})
            parts.append(_inline_part(mask, "image/png"))
        parts.append({"text": prompt})

        logger.info("Requesting edit of %s (mask=%s): %r", image.display_id, mask is not None, prompt)
        payload = self.generate(parts, {"responseModalities": ["IMAGE"]})
        for part in _parts(payload):
            inline = part.get("inlineData") or part.get("inline_data") or {}
            if inline.get("data"):
                try:
                    return base64.b64decode(inline["data"])
                except (ValueError, TypeError) as exc:
                    raise ServiceError("Edit service returned malformed image data") from exc
        raise ServiceError("No image found in the response for editing.")


def _style_instructions(prompt: str) -> str:
    ranges = ", ".join(
        f"{WIRE_NAMES.get(name, name)} {low:g}..{high:g}" for name, (low, high) in RANGES.items()
    )
    return (
        "You are a photo colorist. Propose slider values that reproduce the requested "
        "look. Return a JSON object containing only the sliders that should change. "
        f"Slider ranges: {ranges}. Neutral values are exposure/contrast/highlights/"
        "shadows/saturation/vibrance/channels 100, gamma 1.0, everything else 0.\n"
        f"Requested look: {prompt or 'match the reference image'}"
    )


class GeminiStyleClient(GeminiClient):
    def __init__(
        self, model: str | None = None, *, settings: EditorSettings = SETTINGS, **kwargs
    ) -> None:
        super().__init__(model or settings.style_model, settings=settings, **kwargs)

    @staticmethod
    def response_schema() -> dict:
        return {
            "type": "OBJECT",
            "properties": {
                WIRE_NAMES.get(name, name): {"type": "NUMBER", "nullable": True} for name in RANGES
            },
        }

    def generate_adjustments(
        self, prompt: str, reference: SourceImage | None = None
    ) -> Dict[str, float]:
        parts = [{"text": _style_instructions(prompt)}]
        if reference is not None:
            parts.append(_inline_part(reference.data, reference.mime_type))

        payload = self.generate(
            parts,
            {"responseMimeType": "application/json", "responseSchema": self.response_schema()},
        )
        text = "".join(part.get("text", "") for part in _parts(payload)).strip()
        if not text:
            raise ServiceError("Style service returned no adjustments")
        try:
            raw = json.loads(text)
        except ValueError as exc:
            raise ServiceError("Style service returned malformed JSON") from exc
        if not isinstance(raw, dict):
            raise ServiceError("Style service returned a non-object result")
        return parse_adjustment_delta(raw)


def parse_adjustment_delta(raw: Mapping[str, object]) -> Dict[str, float]:
    """Keep only known, numeric fields of a partial adjustment result."""
    delta: Dict[str, float] = {}
    for key, value in raw.items():
        try:
            name = canonical_name(key)
        except ValidationError:
            logger.debug("Ignoring unknown adjustment %r from style service", key)
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        delta[name] = value
    return delta
