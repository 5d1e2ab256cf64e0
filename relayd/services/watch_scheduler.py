"""Watch polling service for relayd.

Polls the session log of every watched conversation on an interval and
publishes new turns.

Architecture:
- Uses APScheduler AsyncIOScheduler with one IntervalTrigger job per watch
- Job id is the conversation key; changing the rate replaces the job
- Overlapping polls of one watch are skipped by poll_watch
"""

import logging

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from relay_library.sync import WatchState
from relay_library.sync import poll_watch

from ..state import RelayState

logger = logging.getLogger(__name__)


class WatchScheduler:
    """Schedules watch polls.

    Lifecycle: start with the daemon, add/remove jobs as watches start and
    stop, stop on shutdown.
    """

    def __init__(self, state: RelayState) -> None:
        self.state = state
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._running = False

    async def start(self) -> None:
        if self._running:
            logger.warning("Watch scheduler already running")
            return
        self.scheduler.start()
        self._running = True
        logger.info("Watch scheduler started")

    async def stop(self) -> None:
        if not self._running:
            return
        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Watch scheduler stopped")

    def add_watch(self, watch: WatchState) -> None:
        """Add or replace the poll job for a watch."""
        self.scheduler.add_job(
            func=self.poll,
            trigger=IntervalTrigger(seconds=watch.update_rate_seconds),
            args=[watch.conversation_key],
            id=watch.conversation_key,
            name=f"Watch: {watch.conversation_key}",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Polling {watch.session_path} every {watch.update_rate_seconds}s for {watch.conversation_key}")

    def remove_watch(self, conversation_key: str) -> None:
        try:
            self.scheduler.remove_job(conversation_key)
            logger.info(f"Removed watch job for {conversation_key}")
        except JobLookupError:
            logger.debug(f"No watch job for {conversation_key}")

    async def poll(self, conversation_key: str) -> None:
        """Run one poll; a watch stopped meanwhile removes its job."""
        watch = self.state.watches.get(conversation_key)
        if watch is None:
            self.remove_watch(conversation_key)
            return
        settings = self.state.settings
        try:
            result = await poll_watch(
                watch,
                self.state.publish_turn,
                self.state.posted,
                self.state.sync_aborts,
                max_attempts=settings.sync_max_attempts,
                plans_marker=settings.plans_dir_marker,
            )
        except Exception as e:
            logger.error(f"Watch poll for {conversation_key} failed: {e}")
            return
        if result is not None and result.synced_count:
            logger.info(f"Watch for {conversation_key} published {result.synced_count} turns")
