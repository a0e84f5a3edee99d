"""Infrastructure helpers: external service clients, caching, HTTP responses."""

from .cache import ResponseCache, preview_key
from .responses import encode_png, send_bytes, send_png
from .services import GeminiClient, GeminiEditClient, GeminiStyleClient, parse_adjustment_delta

__all__ = [
    "ResponseCache",
    "preview_key",
    "encode_png",
    "send_bytes",
    "send_png",
    "GeminiClient",
    "GeminiEditClient",
    "GeminiStyleClient",
    "parse_adjustment_delta",
]
