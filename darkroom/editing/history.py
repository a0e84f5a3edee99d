"""Append-only version timeline.

Versions are prepended and never removed or reordered. Going back to an old
version does not truncate anything: the next commit lands on top of the full
list.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from ..errors import ValidationError
from .adjustments import AdjustmentState
from .images import SourceImage

logger = logging.getLogger(__name__)

BASELINE_LABEL = "Original"


def _new_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Version:
    label: str
    source_image: SourceImage
    adjustments: AdjustmentState
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "image": self.source_image.describe(),
            "adjustments": self.adjustments.to_dict(),
            "created_at": self.created_at.isoformat(),
        }


class HistoryStore:
    def __init__(self) -> None:
        self._versions: Tuple[Version, ...] = ()
        self._index: Dict[str, Version] = {}

    def start(self, image: SourceImage, adjustments: AdjustmentState) -> Version:
        """Begin a new timeline whose only entry is the baseline."""
        baseline = Version(BASELINE_LABEL, image, adjustments)
        self._versions = (baseline,)
        self._index = {baseline.id: baseline}
        logger.info("History started at %s (image %s)", baseline.id, image.display_id)
        return baseline

    def commit(self, label: str, image: SourceImage, adjustments: AdjustmentState) -> Version:
        if not self._versions:
            raise ValidationError("No baseline image loaded")
        version = Version(label, image, adjustments)
        self._versions = (version,) + self._versions
        self._index[version.id] = version
        logger.info("Committed version %s %r (%d total)", version.id, label, len(self._versions))
        return version

    @property
    def versions(self) -> Tuple[Version, ...]:
        return self._versions

    @property
    def baseline(self) -> Optional[Version]:
        return self._versions[-1] if self._versions else None

    @property
    def latest(self) -> Optional[Version]:
        return self._versions[0] if self._versions else None

    def get(self, version_id: str) -> Version:
        try:
            return self._index[version_id]
        except KeyError:
            raise ValidationError(f"Unknown version: {version_id}") from None

    def __len__(self) -> int:
        return len(self._versions)

    def __iter__(self):
        return iter(self._versions)

    @staticmethod
    def is_active(version: Version, image: SourceImage, adjustments: AdjustmentState) -> bool:
        return (
            version.source_image.display_id == image.display_id
            and version.adjustments == adjustments
        )
