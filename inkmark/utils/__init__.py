"""
Utility functions and helpers.
"""
from .paths import (
    get_annotations_dir,
    get_app_data_dir,
    get_config_dir,
)
from .warning_manager import WarningManager, WarningType

__all__ = [
    # Locations
    'get_app_data_dir',
    'get_config_dir',
    'get_annotations_dir',

    # Confirmations
    'WarningManager',
    'WarningType',
]
