"""Configuration loading for the relay.

Contract:
- Inputs: Config file paths, environment variables
- Outputs: RelaySettings objects
- Side Effects: Creates default config file if missing
"""

import logging
import os
from pathlib import Path

import yaml

from ..storage.paths import get_config_dir
from .settings import RelaySettings

logger = logging.getLogger(__name__)

ENV_PREFIX = "RELAYD_"

DEFAULT_CONFIG = """# relayd configuration
# Every key can be overridden with a RELAYD_<KEY> environment variable

# Server settings
host: "127.0.0.1"
port: 8430
log_level: "info"
workers: 1

# Where the agent writes its per-project session logs
# projects_dir: "~/.claude/projects"

# Display limits
thinking_truncate_length: 500
tool_output_preview_length: 300

# Watch polling interval in seconds (0.5 - 60)
watch_poll_interval_seconds: 2.0

# Delay between replayed turns during /ff, in milliseconds
sync_pacing_delay_ms: 0
"""


def get_config_path() -> Path:
    """Get path to config file.

    Returns:
        Path to relayd.yaml in config directory
    """
    return get_config_dir() / "relayd.yaml"


def create_default_config() -> None:
    """Create default config file if it doesn't exist."""
    config_path = get_config_path()

    if config_path.exists():
        logger.debug(f"Config file already exists: {config_path}")
        return

    config_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    logger.info(f"Created default config: {config_path}")


def load_config(config_path: Path | None = None) -> RelaySettings:
    """Load relay configuration from YAML and environment.

    Environment variables take precedence over YAML settings.
    Variables are prefixed with RELAYD_ (e.g., RELAYD_PORT).

    Args:
        config_path: Optional config file path (default: relayd.yaml in config dir)

    Returns:
        Validated relay settings
    """
    if config_path is None:
        config_path = get_config_path()
        if not config_path.exists():
            create_default_config()

    yaml_settings: dict = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_settings = yaml.safe_load(f) or {}
            logger.debug(f"Loaded config from {config_path}")
        except Exception as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
            logger.info("Using default settings and environment variables")

    if not isinstance(yaml_settings, dict):
        logger.warning(f"Ignoring config at {config_path}: expected a mapping")
        yaml_settings = {}

    # Only pass YAML values that don't have corresponding env vars
    filtered_yaml = {}
    for key, value in yaml_settings.items():
        env_key = f"{ENV_PREFIX}{str(key).upper()}"
        if env_key not in os.environ:
            filtered_yaml[key] = value

    settings = RelaySettings(**filtered_yaml)

    logger.info(
        f"Relay configuration loaded: host={settings.host}, port={settings.port}, log_level={settings.log_level}"
    )

    return settings
