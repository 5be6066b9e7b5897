from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from inkmark.core.geometry import Rect

TEMP_ID_PREFIX = "temp-"


def is_temporary_id(annotation_id: Optional[str]) -> bool:
    """True for ids that were never assigned by the persistence backend."""
    return annotation_id is None or annotation_id.startswith(TEMP_ID_PREFIX)


class AnnotationType(Enum):
    HIGHLIGHT = "highlight"
    NOTE = "note"


class SyncStatus(Enum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass(frozen=True)
class Annotation:
    """
    A highlight or note attached to one page.

    ``bbox`` is (x, y, width, height) in page-pixel space at the scale that
    was active on creation; notes have a zero-size bbox at their anchor.
    """

    page: int  # 1-based page number
    bbox: Rect
    type: AnnotationType
    text: str = ""
    color: str = "#facc15"
    opacity: float = 0.4

    id: Optional[str] = None
    author: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    capture_scale: Optional[float] = None
    sync_status: SyncStatus = SyncStatus.PENDING

    @property
    def is_highlight(self) -> bool:
        return self.type == AnnotationType.HIGHLIGHT

    @property
    def is_note(self) -> bool:
        return self.type == AnnotationType.NOTE

    @property
    def is_persisted(self) -> bool:
        return not is_temporary_id(self.id)

    def scale_or(self, fallback: float) -> float:
        """The capture scale, or *fallback* for records that predate it."""
        return self.capture_scale if self.capture_scale else fallback

    def with_status(self, status: SyncStatus) -> "Annotation":
        return replace(self, sync_status=status)

    def to_dict(self) -> dict:
        """Convert annotation to dictionary for JSON serialization."""
        data = {
            "page": self.page,
            "bbox": list(self.bbox),
            "type": self.type.value,
            "text": self.text,
            "color": self.color,
            "opacity": self.opacity,
        }

        if self.id is not None:
            data["id"] = self.id
        if self.author is not None:
            data["author"] = self.author
        if self.created_at is not None:
            data["createdAt"] = self.created_at
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at
        if self.capture_scale is not None:
            data["captureScale"] = self.capture_scale

        return data

    @staticmethod
    def from_dict(data: dict) -> "Annotation":
        """Create annotation from dictionary. Loaded records count as synced."""
        annotation_type = AnnotationType(data["type"])
        default_color, default_opacity = DEFAULT_STYLE[annotation_type]

        capture_scale = data.get("captureScale")
        return Annotation(
            page=int(data["page"]),
            bbox=Rect(*(float(v) for v in data["bbox"])),
            type=annotation_type,
            text=data.get("text") or "",
            color=data.get("color") or default_color,
            opacity=float(data.get("opacity", default_opacity)),
            id=data.get("id"),
            author=data.get("author"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            capture_scale=float(capture_scale) if capture_scale else None,
            sync_status=SyncStatus.SYNCED,
        )


# (color, opacity) per type
DEFAULT_STYLE = {
    AnnotationType.HIGHLIGHT: ("#facc15", 0.4),
    AnnotationType.NOTE: ("#fef9c3", 1.0),
}
