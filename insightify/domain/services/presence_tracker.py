"""Live presence tracking for currently active visitors.

Entries live in memory only, keyed by (project_id, session_id). A visitor is
active while its last activity falls inside the activity window; entries older
than the purge window are removed by a periodic sweep.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable

from insightify.core.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class LiveVisitor:
    """Snapshot of one visitor's most recent page view."""

    project_id: str
    session_id: str
    current_page: str
    user_agent: str | None
    ip: str | None
    last_activity: datetime
    is_active: bool = True


class LivePresenceTracker:
    """Registry of live visitors per project with TTL decay.

    All reads and writes go through a single lock so the tracker can be shared
    between request handlers, the sweep task and worker threads.
    """

    def __init__(
        self,
        activity_window: float = 300,
        purge_after: float = 600,
        sweep_interval: float = 300,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize presence tracker.

        Args:
            activity_window: Seconds since last activity a visitor counts as live
            purge_after: Seconds since last activity after which an entry is removed
            sweep_interval: Seconds between background sweeps
            clock: Returns the current naive UTC time
        """
        if purge_after < activity_window:
            raise ValueError("purge_after must be at least activity_window")
        self.activity_window = timedelta(seconds=activity_window)
        self.purge_after = timedelta(seconds=purge_after)
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._visitors: dict[str, dict[str, LiveVisitor]] = {}
        self._sweep_task: asyncio.Task | None = None

    def record_page_view(
        self,
        project_id: str,
        session_id: str,
        page_url: str,
        user_agent: str | None = None,
        ip: str | None = None,
    ) -> LiveVisitor:
        """Create or refresh a visitor entry with ``last_activity = now``."""
        now = self._clock()
        visitor = LiveVisitor(
            project_id=project_id,
            session_id=session_id,
            current_page=page_url,
            user_agent=user_agent,
            ip=ip,
            last_activity=now,
        )
        with self._lock:
            self._visitors.setdefault(project_id, {})[session_id] = visitor
        return replace(visitor)

    def get_live_visitors(self, project_id: str) -> list[LiveVisitor]:
        """Visitors active within the activity window, most recent first.

        Returns copies; ``is_active`` is recomputed against the current time.
        """
        now = self._clock()
        live = []
        with self._lock:
            for entry in self._visitors.get(project_id, {}).values():
                entry.is_active = now - entry.last_activity <= self.activity_window
                if entry.is_active:
                    live.append(replace(entry))
        live.sort(key=lambda v: v.last_activity, reverse=True)
        return live

    def get_live_visitor_count(self, project_id: str) -> int:
        return len(self.get_live_visitors(project_id))

    def sweep(self) -> int:
        """Remove entries idle for longer than the purge window.

        Returns:
            Number of entries removed
        """
        removed = 0
        with self._lock:
            now = self._clock()
            for project_id in list(self._visitors):
                project_visitors = self._visitors[project_id]
                for session_id in list(project_visitors):
                    # Entry may have been refreshed since the scan began
                    if now - project_visitors[session_id].last_activity > self.purge_after:
                        del project_visitors[session_id]
                        removed += 1
                if not project_visitors:
                    del self._visitors[project_id]

        if removed:
            logger.debug(f"Presence sweep removed {removed} stale visitors")
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Presence sweep failed: {e}", exc_info=True)

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.is_running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        logger.info(
            "Presence tracker started",
            extra={"sweep_interval_seconds": self.sweep_interval},
        )

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Presence tracker stopped")

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()
