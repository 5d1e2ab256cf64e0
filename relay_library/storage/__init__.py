"""Storage module for relay_library.

Public Interface:
    - get_home_dir: Get RELAYD_HOME
    - get_config_dir: Get config directory
    - resolve_projects_dir: Absolute agent projects directory
    - project_dir_name: Project directory name for a working directory
"""

from .paths import DEFAULT_PROJECTS_DIR
from .paths import get_config_dir
from .paths import get_home_dir
from .paths import project_dir_name
from .paths import resolve_projects_dir

__all__ = [
    "DEFAULT_PROJECTS_DIR",
    "get_home_dir",
    "get_config_dir",
    "project_dir_name",
    "resolve_projects_dir",
]
