"""Path resolution for relayd's own files and the agent's session logs.

relayd keeps its config under RELAYD_HOME. Session logs belong to the
agent and live under its projects directory, one subdirectory per working
directory.

Contract:
- Inputs: Environment variables (RELAYD_HOME, RELAYD_CONFIG_DIR), working directories
- Outputs: Resolved Path objects
- Side Effects: Creates relayd's config directory if it doesn't exist
"""

import os
from pathlib import Path

DEFAULT_PROJECTS_DIR = "~/.claude/projects"


def get_home_dir() -> Path:
    """Root of relayd's files, from RELAYD_HOME (default: .relayd)."""
    return Path(os.environ.get("RELAYD_HOME", ".relayd")).resolve()


def get_config_dir() -> Path:
    """Config directory, created on demand.

    Returns:
        RELAYD_CONFIG_DIR when set, otherwise $RELAYD_HOME/config
    """
    override = os.environ.get("RELAYD_CONFIG_DIR")
    config_dir = Path(override).resolve() if override is not None else get_home_dir() / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def resolve_projects_dir(value: str | Path = DEFAULT_PROJECTS_DIR) -> Path:
    """Absolute projects directory with ``~`` expanded. Never created here."""
    return Path(value).expanduser().resolve()


def project_dir_name(working_dir: str) -> str:
    """Name of the agent's project directory for a working directory.

    Example:
        >>> project_dir_name("/home/me/app")
        '-home-me-app'
    """
    return working_dir.replace("/", "-")
