"""
Per-platform locations for user data and settings.

Setting ``INKMARK_HOME`` puts both under one directory, which keeps
portable installs and test runs out of the user's profile.
"""
import os
import sys
from pathlib import Path

APP_NAME = "InkmarkPDF"
HOME_ENV = "INKMARK_HOME"


def _override(kind: str) -> Path:
    path = Path(os.environ[HOME_ENV]) / kind
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_app_data_dir(app_name: str = APP_NAME) -> Path:
    """
    Get the application data directory for storing user data.

    Args:
        app_name: Name of the application

    Returns:
        Path to the app data directory
    """
    if os.environ.get(HOME_ENV):
        return _override("data")

    if os.name == 'nt':  # Windows
        base_dir = os.environ.get('APPDATA', os.path.expanduser('~'))
    elif sys.platform == 'darwin':  # macOS
        base_dir = os.path.expanduser('~/Library/Application Support')
    else:  # Linux and others
        base_dir = os.environ.get('XDG_DATA_HOME') or os.path.expanduser('~/.local/share')

    app_dir = Path(base_dir) / app_name
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_config_dir(app_name: str = APP_NAME) -> Path:
    """Get the configuration directory for storing settings."""
    if os.environ.get(HOME_ENV):
        return _override("config")

    if os.name == 'nt':  # Windows
        config_dir = get_app_data_dir(app_name) / "config"
    elif sys.platform == 'darwin':  # macOS
        config_dir = Path.home() / "Library" / "Preferences" / app_name
    else:  # Linux
        base_dir = os.environ.get('XDG_CONFIG_HOME') or str(Path.home() / ".config")
        config_dir = Path(base_dir) / app_name

    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_annotations_dir(app_name: str = APP_NAME) -> Path:
    """Directory holding the per-user, per-file annotation records."""
    path = get_app_data_dir(app_name) / "annotations"
    path.mkdir(parents=True, exist_ok=True)
    return path
