import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class EditorSettings:
    api_key: str
    service_base_url: str
    edit_model: str
    style_model: str
    service_timeout: float
    upscale_target_pixels: int
    brush_size: int
    mask_opacity: float
    grain_seed: int
    preview_max_edge: int
    cache_ttl: float
    port: int
    log_level: str

    @classmethod
    def from_env(cls) -> "EditorSettings":
        return cls(
            api_key=os.getenv("GEMINI_API_KEY", os.getenv("API_KEY", "")),
            service_base_url=os.getenv(
                "GEMINI_BASE_URL",
                "https://generativelanguage.googleapis.com/v1beta",
            ),
            edit_model=os.getenv("EDIT_MODEL", "gemini-2.5-flash-image"),
            style_model=os.getenv("STYLE_MODEL", "gemini-2.5-flash"),
            service_timeout=float(os.getenv("SERVICE_TIMEOUT", "60.0")),
            upscale_target_pixels=int(os.getenv("UPSCALE_TARGET_PIXELS", "24000000")),
            brush_size=int(os.getenv("BRUSH_SIZE", "20")),
            mask_opacity=float(os.getenv("MASK_OPACITY", "0.7")),
            grain_seed=int(os.getenv("GRAIN_SEED", "1337")),
            preview_max_edge=int(os.getenv("PREVIEW_MAX_EDGE", "1600")),
            cache_ttl=float(os.getenv("CACHE_TTL", "30")),
            port=int(os.getenv("PORT", "5600")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


SETTINGS = EditorSettings.from_env()


def configure_logging() -> logging.Logger:
    logging.basicConfig(level=SETTINGS.log_level)
    return logging.getLogger("darkroom")
