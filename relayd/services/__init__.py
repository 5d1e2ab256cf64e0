"""Background services for the relayd daemon."""

from .watch_scheduler import WatchScheduler

__all__ = ["WatchScheduler"]
