"""Event repository."""

from datetime import datetime

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from insightify.persistence.models.event import Event
from insightify.persistence.repositories.base import BaseRepository

# Event types emitted by the tracking snippet itself
SYSTEM_EVENT_TYPES = ("pageview", "click", "scroll", "move")


class EventRepository(BaseRepository[Event]):
    """Repository for raw event queries."""

    def __init__(self, session: AsyncSession):
        """Initialize event repository."""
        super().__init__(Event, session)

    async def get_recent(
        self, project_id: str, since: datetime, limit: int = 50
    ) -> list[Event]:
        """Get events strictly after ``since``, newest first."""
        stmt = (
            select(Event)
            .where(Event.project_id == project_id, Event.timestamp > since)
            .order_by(Event.timestamp.desc(), Event.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_type_summary(
        self, project_id: str, start: datetime, end: datetime
    ) -> list[tuple[str, int, int]]:
        """Get (event_type, count, unique_sessions) ordered by count descending."""
        count = func.count(Event.id).label("count")
        stmt = (
            select(
                Event.event_type,
                count,
                func.count(distinct(Event.session_id)).label("unique_sessions"),
            )
            .where(
                Event.project_id == project_id,
                Event.timestamp.between(start, end),
            )
            .group_by(Event.event_type)
            .order_by(count.desc(), Event.event_type.asc())
        )
        result = await self.session.execute(stmt)
        return [(event_type, n, sessions) for event_type, n, sessions in result.all()]

    async def get_custom(
        self, project_id: str, start: datetime, end: datetime, limit: int = 100
    ) -> list[Event]:
        """Get events that are not emitted by the snippet itself."""
        stmt = (
            select(Event)
            .where(
                Event.project_id == project_id,
                Event.timestamp.between(start, end),
                Event.event_type.not_in(SYSTEM_EVENT_TYPES),
            )
            .order_by(Event.timestamp.desc(), Event.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_since(self, project_id: str, since: datetime) -> int:
        """Count events strictly after ``since``."""
        stmt = select(func.count(Event.id)).where(
            Event.project_id == project_id, Event.timestamp > since
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
