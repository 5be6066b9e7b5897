"""
Viewer settings persisted as JSON in the user's config directory.
"""
import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional, Union

from inkmark.core.color_filter import ColorFilterMatrix, compile_hex_color_filter, parse_hex_color
from inkmark.utils.paths import get_config_dir

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.json"

MIN_HIGHLIGHT_OPACITY = 0.1
MAX_HIGHLIGHT_OPACITY = 0.8

DEFAULT_PAGE_COLOR = "#ffffff"
DEFAULT_TEXT_COLOR = "#000000"


@dataclass
class ViewerSettings:
    """Everything the viewer lets the user tune."""

    scale: float = 1.3
    page_color: str = DEFAULT_PAGE_COLOR
    text_color: str = DEFAULT_TEXT_COLOR
    highlight_color: str = "#facc15"
    highlight_opacity: float = 0.4
    note_color: str = "#fef9c3"
    note_opacity: float = 1.0
    settle_delay_ms: int = 50
    export_policy: str = "copy"  # "copy" or "replace"
    export_folder: Optional[str] = None
    user_id: str = "guest"

    def __post_init__(self):
        self.highlight_opacity = clamp_highlight_opacity(self.highlight_opacity)
        if self.scale <= 0:
            logger.warning("Ignoring invalid scale %r", self.scale)
            self.scale = 1.3
        if self.export_policy not in ("copy", "replace"):
            logger.warning("Unknown export policy %r, using copy", self.export_policy)
            self.export_policy = "copy"
        for name in ("page_color", "text_color", "highlight_color", "note_color"):
            value = getattr(self, name)
            try:
                parse_hex_color(value)
            except (ValueError, AttributeError):
                default = ViewerSettings.__dataclass_fields__[name].default
                logger.warning("Ignoring invalid %s %r", name, value)
                setattr(self, name, default)

    @property
    def color_filter(self) -> ColorFilterMatrix:
        """Recoloring matrix for the current page and text colors."""
        return compile_hex_color_filter(self.page_color, self.text_color)

    def reset_colors(self) -> None:
        self.page_color = DEFAULT_PAGE_COLOR
        self.text_color = DEFAULT_TEXT_COLOR

    def set_highlight_opacity(self, opacity: float) -> None:
        self.highlight_opacity = clamp_highlight_opacity(opacity)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def default_path(cls) -> Path:
        return get_config_dir() / SETTINGS_FILENAME

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "ViewerSettings":
        """
        Load settings, falling back to defaults for anything missing or bad.
        """
        path = Path(path) if path is not None else cls.default_path()
        if not path.exists():
            return cls()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to load settings from %s: %s", path, e)
            return cls()

        if not isinstance(data, dict):
            logger.warning("Settings file %s is not an object, using defaults", path)
            return cls()

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown settings: %s", ", ".join(unknown))

        try:
            return cls(**{key: value for key, value in data.items() if key in known})
        except TypeError as e:
            logger.warning("Invalid settings in %s: %s", path, e)
            return cls()

    def save(self, path: Optional[Union[str, Path]] = None) -> bool:
        """
        Save settings to disk.

        Returns:
            True if save was successful, False otherwise
        """
        path = Path(path) if path is not None else self.default_path()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(asdict(self), f, indent=2)
            return True
        except OSError as e:
            logger.error("Failed to save settings to %s: %s", path, e)
            return False


def clamp_highlight_opacity(opacity: float) -> float:
    try:
        value = float(opacity)
    except (TypeError, ValueError):
        return 0.4
    return max(MIN_HIGHLIGHT_OPACITY, min(MAX_HIGHLIGHT_OPACITY, value))
