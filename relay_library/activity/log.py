"""Ordered activity log for one agent query.

Entries are immutable. An in-progress entry is updated by replacing it at
its index, and tool result metrics are held apart from the entries, keyed
by tool use id. A reader holding a copy of ``entries`` never sees an entry
change under it.
"""

import time

from ..models import AbortedEntry
from ..models import ActivityEntry
from ..models import ContextClearedEntry
from ..models import ErrorEntry
from ..models import ModeChangedEntry
from ..models import SessionChangedEntry
from ..models import ToolCompleteEntry
from ..models import ToolResult
from ..models import ToolStartEntry


def now_ms() -> int:
    return int(time.time() * 1000)


class ActivityLog:
    """Entries in time order plus tool results joined by tool use id."""

    def __init__(self: "ActivityLog") -> None:
        self.entries: list[ActivityEntry] = []
        self.results: dict[str, ToolResult] = {}

    def __len__(self: "ActivityLog") -> int:
        return len(self.entries)

    def append(self: "ActivityLog", entry: ActivityEntry) -> int:
        """Append an entry and return its index."""
        self.entries.append(entry)
        return len(self.entries) - 1

    def replace(self: "ActivityLog", index: int, entry: ActivityEntry) -> None:
        self.entries[index] = entry

    def attach_result(self: "ActivityLog", result: ToolResult) -> None:
        if result.tool_use_id is not None:
            self.results[result.tool_use_id] = result

    def result_for(self: "ActivityLog", entry: ActivityEntry) -> ToolResult | None:
        tool_use_id = getattr(entry, "tool_use_id", None)
        if tool_use_id is None:
            return None
        return self.results.get(tool_use_id)

    def live_view(self: "ActivityLog") -> list[ActivityEntry]:
        """Entries to show live: a tool start is hidden once its completion exists.

        Starts and completions are matched by tool use id, or by tool name
        for starts without an id. Both stay in ``entries`` for history.
        """
        completed_ids = set()
        completed_names = set()
        for entry in self.entries:
            if isinstance(entry, ToolCompleteEntry):
                completed_names.add(entry.tool)
                if entry.tool_use_id is not None:
                    completed_ids.add(entry.tool_use_id)

        view = []
        for entry in self.entries:
            if isinstance(entry, ToolStartEntry):
                if entry.tool_use_id is not None and entry.tool_use_id in completed_ids:
                    continue
                if entry.tool_use_id is None and entry.tool in completed_names:
                    continue
            view.append(entry)
        return view

    def add_error(self: "ActivityLog", message: str, timestamp: int | None = None) -> int:
        return self.append(ErrorEntry(timestamp=timestamp or now_ms(), message=message))

    def add_aborted(self: "ActivityLog", timestamp: int | None = None) -> int:
        return self.append(AbortedEntry(timestamp=timestamp or now_ms()))

    def add_mode_changed(self: "ActivityLog", mode: str, timestamp: int | None = None) -> int:
        return self.append(ModeChangedEntry(timestamp=timestamp or now_ms(), mode=mode))

    def add_context_cleared(self: "ActivityLog", timestamp: int | None = None) -> int:
        return self.append(ContextClearedEntry(timestamp=timestamp or now_ms()))

    def add_session_changed(
        self: "ActivityLog",
        session_id: str,
        previous_session_id: str | None,
        timestamp: int | None = None,
    ) -> int:
        return self.append(
            SessionChangedEntry(
                timestamp=timestamp or now_ms(),
                session_id=session_id,
                previous_session_id=previous_session_id,
            )
        )
