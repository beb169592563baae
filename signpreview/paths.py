"""
SignPreview Path Configuration.

Centralized path management for runtime data storage.
All runtime data is stored outside the source tree.

Directory structure with SIGNPREVIEW_ROOT=/mnt/signpreview:
    /mnt/signpreview/config/  - Configuration files
    /mnt/signpreview/logs/    - Log files

Environment variable:
    SIGNPREVIEW_ROOT - Base directory for all data (default: ~/.local/share/signpreview)
"""

import os
from pathlib import Path

APP_NAME = "signpreview"

# Get root directory from environment or use default
_root_override = os.environ.get("SIGNPREVIEW_ROOT")
if _root_override:
    ROOT_DIR = Path(_root_override)
else:
    _xdg_data_home = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    ROOT_DIR = _xdg_data_home / APP_NAME

CONFIG_DIR = ROOT_DIR / "config"
LOGS_DIR = ROOT_DIR / "logs"

_ALL_DIRS = [
    CONFIG_DIR,
    LOGS_DIR,
]


def ensure_directories() -> None:
    """Create all required directories if they don't exist."""
    for dir_path in _ALL_DIRS:
        dir_path.mkdir(parents=True, exist_ok=True)


def get_log_file_path(filename: str = "signpreview.log") -> Path:
    """Get the full path for a log file."""
    return LOGS_DIR / filename


def get_config_file_path(filename: str = "config.json") -> Path:
    """Get the full path for a runtime configuration file."""
    return CONFIG_DIR / filename
