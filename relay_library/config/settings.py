"""Settings for the relay.

Contract:
- Inputs: Environment variables, YAML files
- Outputs: Validated settings objects
- Side Effects: None (read-only)
"""

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

from ..storage.paths import DEFAULT_PROJECTS_DIR
from ..storage.paths import resolve_projects_dir


class RelaySettings(BaseSettings):
    """Configuration for the relay library and relayd daemon.

    Attributes:
        host: Listen address (default: 127.0.0.1)
        port: Listen port (default: 8430)
        log_level: Logging level (default: info)
        workers: Number of workers (default: 1)
        projects_dir: Directory holding the agent's per-project session logs

    Example:
        >>> settings = RelaySettings()
        >>> assert settings.thinking_truncate_length == 500
    """

    model_config = SettingsConfigDict(
        env_prefix="RELAYD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8430
    log_level: str = "info"
    workers: int = 1
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    projects_dir: str = DEFAULT_PROJECTS_DIR
    plans_dir_marker: str = ".claude/plans/"

    # Display limits
    thinking_truncate_length: int = 500
    tool_output_preview_length: int = 300
    tool_output_max_chars: int = 50_000
    live_text_limit: int = 300

    # Watch and sync behaviour
    watch_poll_interval_seconds: float = Field(default=2.0, ge=0.5, le=60.0)
    sync_pacing_delay_ms: int = 0
    sync_max_attempts: int = Field(default=3, ge=1)

    # Unanswered approvals are auto-denied after this long
    approval_timeout_seconds: float = 7 * 24 * 60 * 60

    @field_validator("projects_dir")
    @classmethod
    def expand_and_resolve_path(cls, v: str) -> str:
        """Expand ~ and resolve to absolute path.

        Args:
            v: Path string (may contain ~ or be relative)

        Returns:
            Absolute path as string
        """
        return str(resolve_projects_dir(v))
