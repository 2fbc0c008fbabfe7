"""Event store: append-only persistence for tracking data with rollups.

Every append writes its raw rows and the matching rollups (sessions for page
views and events, heatmap pages for points) in one transaction. Failures roll
the whole batch back and propagate; there is no buffering or retry here.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from insightify.core.clock import to_naive_utc, utcnow
from insightify.core.exceptions import ValidationError
from insightify.domain.models.tracking import (
    EventRecord,
    HeatmapPointRecord,
    PageViewRecord,
)
from insightify.persistence.errors import storage_errors
from insightify.persistence.models.event import Event
from insightify.persistence.models.page_view import PageView
from insightify.persistence.repositories.event_repository import EventRepository
from insightify.persistence.repositories.heatmap_repository import (
    HeatmapRepository,
    PageActivity,
)
from insightify.persistence.repositories.page_view_repository import PageViewRepository
from insightify.persistence.repositories.session_repository import (
    SessionDelta,
    SessionRepository,
)

logger = logging.getLogger(__name__)


class EventStore:
    """Append and retention operations over the tracking tables."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize event store."""
        self.session = session
        self.page_view_repo = PageViewRepository(session)
        self.event_repo = EventRepository(session)
        self.session_repo = SessionRepository(session)
        self.heatmap_repo = HeatmapRepository(session)

    async def append_page_views(
        self, project_id: str, records: list[PageViewRecord]
    ) -> list[PageView]:
        """Persist a batch of page views and merge their session rollups.

        Args:
            project_id: Project the batch belongs to
            records: Validated page view records; device fields already derived

        Returns:
            The stored page views, in batch order
        """
        if not records:
            return []

        now = utcnow()
        rows = [
            {
                "session_id": r.session_id,
                "visitor_id": r.visitor_id,
                "page_url": r.page_url,
                "page_title": r.page_title,
                "referrer": r.referrer,
                "user_agent": r.user_agent,
                "device_type": r.device_type,
                "browser": r.browser,
                "os": r.os,
                "ip_address": r.ip_address,
                "timestamp": _stamp(r.timestamp, now),
            }
            for r in records
        ]

        deltas: OrderedDict[str, SessionDelta] = OrderedDict()
        for row in sorted(rows, key=lambda r: r["timestamp"]):
            delta = deltas.get(row["session_id"])
            if delta is None:
                delta = deltas[row["session_id"]] = SessionDelta(
                    session_id=row["session_id"],
                    first_seen=row["timestamp"],
                    last_seen=row["timestamp"],
                    visitor_id=row["visitor_id"],
                    device_type=row["device_type"],
                    browser=row["browser"],
                    os=row["os"],
                )
            delta.page_views += 1
            delta.last_seen = row["timestamp"]

        async with storage_errors("append_page_views"):
            try:
                stored = await self.page_view_repo.add_all(project_id, rows)
                for delta in deltas.values():
                    await self.session_repo.merge(project_id, delta)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info(
            f"Appended {len(stored)} page views across {len(deltas)} sessions",
            extra={"project_id": project_id},
        )
        return stored

    async def append_events(
        self, project_id: str, records: list[EventRecord]
    ) -> list[Event]:
        """Persist a batch of events and bump their session rollups."""
        if not records:
            return []

        now = utcnow()
        rows = [
            {
                "session_id": r.session_id,
                "event_type": r.event_type,
                "event_data": r.event_data,
                "page_url": r.page_url,
                "timestamp": _stamp(r.timestamp, now),
            }
            for r in records
        ]

        deltas: OrderedDict[str, SessionDelta] = OrderedDict()
        for row in sorted(rows, key=lambda r: r["timestamp"]):
            delta = deltas.get(row["session_id"])
            if delta is None:
                delta = deltas[row["session_id"]] = SessionDelta(
                    session_id=row["session_id"],
                    first_seen=row["timestamp"],
                    last_seen=row["timestamp"],
                )
            delta.events += 1
            delta.last_seen = row["timestamp"]

        async with storage_errors("append_events"):
            try:
                stored = await self.event_repo.add_all(project_id, rows)
                for delta in deltas.values():
                    await self.session_repo.merge(project_id, delta)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info(
            f"Appended {len(stored)} events",
            extra={"project_id": project_id},
        )
        return stored

    async def append_heatmap_points(
        self, project_id: str, records: list[HeatmapPointRecord]
    ) -> list[dict]:
        """Merge a batch of heatmap observations into point counts.

        Observations sharing a (page, x, y, type) key within the batch are
        summed first; the database then adds each total to any existing row.

        Returns:
            The merged point increments that were applied
        """
        if not records:
            return []

        now = utcnow()
        merged: OrderedDict[tuple, dict] = OrderedDict()
        pages: OrderedDict[str, PageActivity] = OrderedDict()

        for r in records:
            stamp = _stamp(r.timestamp, now)
            key = (r.page_url, r.x, r.y, r.heatmap_type)
            point = merged.get(key)
            if point is None:
                merged[key] = {
                    "page_url": r.page_url,
                    "page_title": r.page_title,
                    "heatmap_type": r.heatmap_type,
                    "x": r.x,
                    "y": r.y,
                    "count": r.count,
                    "element_selector": r.element_selector,
                    "element_text": r.element_text,
                    "timestamp": stamp,
                }
            else:
                point["count"] += r.count
                point["timestamp"] = max(point["timestamp"], stamp)
                # Latest non-null element and title win
                for field in ("page_title", "element_selector", "element_text"):
                    value = getattr(r, field)
                    if value is not None:
                        point[field] = value

            activity = pages.get(r.page_url)
            if activity is None:
                activity = pages[r.page_url] = PageActivity(page_url=r.page_url)
            if r.page_title is not None:
                activity.page_title = r.page_title
            activity.add(r.heatmap_type, r.count)

        points = list(merged.values())
        async with storage_errors("append_heatmap_points"):
            try:
                await self.heatmap_repo.merge_points(project_id, points)
                for activity in pages.values():
                    await self.heatmap_repo.merge_page(project_id, activity, now)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info(
            f"Merged {len(records)} heatmap observations into {len(points)} points",
            extra={"project_id": project_id},
        )
        return points

    async def clean_old_data(self, days_to_keep: int) -> dict[str, int]:
        """Delete tracking data older than the retention cutoff.

        Args:
            days_to_keep: Number of days of data to retain

        Returns:
            Deleted row counts per table
        """
        if days_to_keep < 0:
            raise ValidationError("days_to_keep must not be negative")

        cutoff = utcnow() - timedelta(days=days_to_keep)
        async with storage_errors("clean_old_data"):
            try:
                deleted = {
                    "page_views": await self.page_view_repo.delete_older_than(cutoff),
                    "events": await self.event_repo.delete_older_than(cutoff),
                    "heatmap_points": await self.heatmap_repo.delete_older_than(cutoff),
                    "sessions": await self.session_repo.delete_older_than(cutoff),
                }
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        logger.info(
            f"Cleaned data older than {days_to_keep} days",
            extra={"cutoff": cutoff.isoformat(), "deleted": deleted},
        )
        return deleted


def _stamp(value: datetime | None, now: datetime) -> datetime:
    """Use the supplied timestamp for imports, otherwise the write time."""
    if value is None:
        return now
    return to_naive_utc(value)
