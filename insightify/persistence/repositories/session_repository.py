"""Session rollup repository."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import DateTime, case, func, literal, select
from sqlalchemy.ext.asyncio import AsyncSession

from insightify.persistence.models.visitor_session import VisitorSession
from insightify.persistence.repositories.base import BaseRepository
from insightify.persistence.upsert import upsert_insert


@dataclass
class SessionDelta:
    """Contribution of one ingest batch to a single session rollup."""

    session_id: str
    first_seen: datetime
    last_seen: datetime
    page_views: int = 0
    events: int = 0
    visitor_id: str | None = None
    device_type: str | None = None
    browser: str | None = None
    os: str | None = None

    @property
    def record_count(self) -> int:
        return self.page_views + self.events


class SessionRepository(BaseRepository[VisitorSession]):
    """Repository for session rollups."""

    time_column = "start_time"

    def __init__(self, session: AsyncSession):
        """Initialize session repository."""
        super().__init__(VisitorSession, session)

    async def merge(self, project_id: str, delta: SessionDelta) -> None:
        """Create or incrementally update a session rollup.

        Counts are added atomically in the database. A new session only gets
        an end time when the batch already holds more than one record for it. The
        span only widens, whatever order timestamped records arrive in.
        """
        table = VisitorSession.__table__
        last_seen = literal(delta.last_seen, DateTime())
        latest = func.coalesce(table.c.end_time, table.c.start_time)

        stmt = upsert_insert(self.dialect_name, table).values(
            project_id=project_id,
            session_id=delta.session_id,
            visitor_id=delta.visitor_id,
            start_time=delta.first_seen,
            end_time=delta.last_seen if delta.record_count > 1 else None,
            page_views=delta.page_views,
            events=delta.events,
            device_type=delta.device_type,
            browser=delta.browser,
            os=delta.os,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.project_id, table.c.session_id],
            set_={
                "page_views": table.c.page_views + excluded.page_views,
                "events": table.c.events + excluded.events,
                "start_time": case(
                    (excluded.start_time < table.c.start_time, excluded.start_time),
                    else_=table.c.start_time,
                ),
                "end_time": case(
                    (latest > last_seen, latest),
                    else_=last_seen,
                ),
                "visitor_id": func.coalesce(table.c.visitor_id, excluded.visitor_id),
                "device_type": func.coalesce(table.c.device_type, excluded.device_type),
                "browser": func.coalesce(table.c.browser, excluded.browser),
                "os": func.coalesce(table.c.os, excluded.os),
            },
        )
        await self.session.execute(stmt)

    async def get_bounce_counts(
        self, project_id: str, start: datetime, end: datetime
    ) -> tuple[int, int]:
        """Count sessions with page views and single-page sessions in a window.

        Returns:
            Tuple of (sessions, bounced_sessions)
        """
        stmt = select(
            func.count(VisitorSession.id),
            func.coalesce(
                func.sum(case((VisitorSession.page_views == 1, 1), else_=0)), 0
            ),
        ).where(
            VisitorSession.project_id == project_id,
            VisitorSession.start_time.between(start, end),
            VisitorSession.page_views >= 1,
        )
        result = await self.session.execute(stmt)
        total, bounced = result.one()
        return total or 0, bounced or 0

    async def get_closed_spans(
        self, project_id: str, start: datetime, end: datetime
    ) -> list[tuple[datetime, datetime]]:
        """Get (start_time, end_time) for sessions in a window that have ended."""
        stmt = select(VisitorSession.start_time, VisitorSession.end_time).where(
            VisitorSession.project_id == project_id,
            VisitorSession.start_time.between(start, end),
            VisitorSession.end_time.is_not(None),
        )
        result = await self.session.execute(stmt)
        return [(s, e) for s, e in result.all()]
