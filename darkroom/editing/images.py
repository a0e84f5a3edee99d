from __future__ import annotations

import base64
import hashlib
import io
from dataclasses import dataclass, field
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from ..errors import ResourceError, ValidationError

_FORMATS = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
    "image/bmp": "BMP",
    "image/tiff": "TIFF",
}


def pil_format(mime_type: str) -> str:
    return _FORMATS.get(mime_type.lower(), "PNG")


def mime_for_format(fmt: str | None) -> str:
    for mime, name in _FORMATS.items():
        if name == (fmt or "").upper():
            return mime
    return "image/png"


@dataclass(frozen=True)
class SourceImage:
    """Immutable encoded image payload.

    ``display_id`` is derived from the bytes, so two payloads with the same
    content share an identity regardless of where they came from.
    """

    data: bytes = field(repr=False)
    mime_type: str = "image/png"
    display_id: str = field(init=False)
    size: Tuple[int, int] = field(init=False)

    def __post_init__(self) -> None:
        if not self.data:
            raise ValidationError("Image payload is empty")
        try:
            with Image.open(io.BytesIO(self.data)) as probe:
                size = probe.size
        except (UnidentifiedImageError, OSError) as exc:
            raise ValidationError(f"Unreadable image payload: {exc}") from exc
        object.__setattr__(self, "display_id", hashlib.sha256(self.data).hexdigest()[:16])
        object.__setattr__(self, "size", size)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str | None = None) -> "SourceImage":
        """Wrap ``data``, sniffing the MIME type from the payload when not given."""
        if mime_type:
            return cls(data, mime_type)
        try:
            with Image.open(io.BytesIO(data)) as probe:
                fmt = probe.format
        except (UnidentifiedImageError, OSError) as exc:
            raise ValidationError(f"Unreadable image payload: {exc}") from exc
        return cls(data, mime_for_format(fmt))

    @classmethod
    def from_image(cls, img: Image.Image, mime_type: str = "image/png") -> "SourceImage":
        fmt = pil_format(mime_type)
        if fmt == "JPEG" and img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        buffer = io.BytesIO()
        try:
            img.save(buffer, fmt)
        except (OSError, ValueError) as exc:
            raise ResourceError(f"Could not encode image as {fmt}: {exc}") from exc
        return cls(buffer.getvalue(), mime_type if fmt != "PNG" else "image/png")

    @property
    def width(self) -> int:
        return self.size[0]

    @property
    def height(self) -> int:
        return self.size[1]

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def open(self) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(self.data))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            raise ResourceError(f"Could not decode image {self.display_id}: {exc}") from exc
        return img

    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def describe(self) -> dict:
        return {
            "display_id": self.display_id,
            "mime_type": self.mime_type,
            "width": self.width,
            "height": self.height,
        }
