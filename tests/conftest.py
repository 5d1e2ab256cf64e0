"""Pytest configuration and shared fixtures."""

import json
import tempfile
from collections.abc import Callable
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest


@pytest.fixture
def temp_storage_dir() -> Generator[Path, None, None]:
    """Create temporary storage directory for tests.

    Automatically cleaned up after test completes.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_storage_env(temp_storage_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point RELAYD_HOME and the projects directory at a temp directory.

    Args:
        temp_storage_dir: Temporary directory fixture
        monkeypatch: pytest monkeypatch fixture

    Returns:
        Path to temporary storage directory
    """
    monkeypatch.setenv("RELAYD_HOME", str(temp_storage_dir))
    monkeypatch.delenv("RELAYD_CONFIG_DIR", raising=False)
    monkeypatch.setenv("RELAYD_PROJECTS_DIR", str(temp_storage_dir / "projects"))
    return temp_storage_dir


def user_text(uuid: str, text: str, timestamp: str | None = None) -> dict[str, Any]:
    return {
        "type": "user",
        "uuid": uuid,
        "timestamp": timestamp,
        "sessionId": "sess-1",
        "message": {"role": "user", "content": text},
    }


def assistant_blocks(uuid: str, blocks: list[dict[str, Any]], timestamp: str | None = None) -> dict[str, Any]:
    return {
        "type": "assistant",
        "uuid": uuid,
        "timestamp": timestamp,
        "sessionId": "sess-1",
        "message": {"role": "assistant", "content": blocks},
    }


def assistant_text(uuid: str, text: str, timestamp: str | None = None) -> dict[str, Any]:
    return assistant_blocks(uuid, [{"type": "text", "text": text}], timestamp)


def assistant_thinking(uuid: str, thinking: str, timestamp: str | None = None) -> dict[str, Any]:
    return assistant_blocks(uuid, [{"type": "thinking", "thinking": thinking}], timestamp)


def tool_use(
    uuid: str,
    tool_use_id: str,
    name: str,
    tool_input: dict[str, Any] | None = None,
    timestamp: str | None = None,
) -> dict[str, Any]:
    return assistant_blocks(
        uuid,
        [{"type": "tool_use", "id": tool_use_id, "name": name, "input": tool_input or {}}],
        timestamp,
    )


def tool_result(
    uuid: str,
    tool_use_id: str,
    content: str,
    is_error: bool = False,
    side_channel: Any = None,
    timestamp: str | None = None,
) -> dict[str, Any]:
    record = {
        "type": "user",
        "uuid": uuid,
        "timestamp": timestamp,
        "sessionId": "sess-1",
        "message": {
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": tool_use_id, "content": content, "is_error": is_error}],
        },
    }
    if side_channel is not None:
        record["toolUseResult"] = side_channel
    return record


def append_records(path: Path, records: list[dict[str, Any]]) -> None:
    """Append records to a JSONL log, one complete line each."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record) + "\n")


@pytest.fixture
def session_log(temp_storage_dir: Path) -> Path:
    """Path to an empty session log that does not exist yet."""
    return temp_storage_dir / "session.jsonl"


@pytest.fixture
def write_session(session_log: Path) -> Callable[[list[dict[str, Any]]], Path]:
    """Append records to the session log fixture and return its path."""

    def write(records: list[dict[str, Any]]) -> Path:
        append_records(session_log, records)
        return session_log

    return write


@pytest.fixture
def sample_records() -> list[dict[str, Any]]:
    """A two-turn conversation with tool use, thinking and noise lines."""
    return [
        {"type": "queue-operation", "operation": "enqueue"},
        user_text("u1", "Read the config"),
        assistant_thinking("a1", "I should read the file"),
        tool_use("a2", "toolu_1", "Read", {"file_path": "/repo/config.yaml"}),
        tool_result("u2", "toolu_1", "host: 1\nport: 2\n"),
        assistant_text("a3", "The config sets host and port."),
        {"type": "progress", "data": {}},
        user_text("u3", "Now list files"),
        tool_use("a4", "toolu_2", "Glob", {"pattern": "*.py"}),
        tool_result("u4", "toolu_2", "a.py\nb.py"),
    ]


def write_project_session(
    storage_dir: Path,
    working_dir: str,
    session_id: str,
    records: list[dict[str, Any]],
) -> Path:
    """Write a session log where the daemon looks for it under ``storage_dir/projects``."""
    path = storage_dir / "projects" / working_dir.replace("/", "-") / f"{session_id}.jsonl"
    append_records(path, records)
    return path
