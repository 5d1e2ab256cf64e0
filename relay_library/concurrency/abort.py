"""Cooperative abort flags keyed by conversation."""

import logging

logger = logging.getLogger(__name__)


class AbortTracker:
    """Set of conversation keys flagged for cancellation.

    Long operations check ``is_set`` between units of work (between turns
    of a sync, between events of a query), never mid-unit.
    """

    def __init__(self: "AbortTracker", name: str = "abort") -> None:
        self.name = name
        self._flagged: set[str] = set()

    def mark(self: "AbortTracker", key: str) -> None:
        self._flagged.add(key)
        logger.info(f"Marked {key} for {self.name}")

    def clear(self: "AbortTracker", key: str) -> None:
        self._flagged.discard(key)

    def is_set(self: "AbortTracker", key: str) -> bool:
        return key in self._flagged

    def reset(self: "AbortTracker") -> None:
        self._flagged.clear()


class SyncAbortTracker(AbortTracker):
    """Abort flags for background /ff and watch syncs."""

    def __init__(self: "SyncAbortTracker") -> None:
        super().__init__(name="sync abort")


class QueryAbortTracker(AbortTracker):
    """Abort flags for live agent queries interrupted by the user."""

    def __init__(self: "QueryAbortTracker") -> None:
        super().__init__(name="query abort")
