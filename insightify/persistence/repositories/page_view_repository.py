"""Page view repository."""

from datetime import datetime

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from insightify.persistence.models.page_view import PageView
from insightify.persistence.repositories.base import BaseRepository


class PageViewRepository(BaseRepository[PageView]):
    """Repository for raw page view queries."""

    def __init__(self, session: AsyncSession):
        """Initialize page view repository."""
        super().__init__(PageView, session)

    def _in_window(self, project_id: str, start: datetime, end: datetime):
        return (
            PageView.project_id == project_id,
            PageView.timestamp.between(start, end),
        )

    async def get_window_totals(
        self, project_id: str, start: datetime, end: datetime
    ) -> tuple[int, int, int]:
        """Count page views, distinct sessions and distinct visitors in a window.

        Visitors fall back to the session id when no visitor id was sent.

        Returns:
            Tuple of (page_views, unique_sessions, unique_visitors)
        """
        visitor_key = func.coalesce(PageView.visitor_id, PageView.session_id)
        stmt = select(
            func.count(PageView.id),
            func.count(distinct(PageView.session_id)),
            func.count(distinct(visitor_key)),
        ).where(*self._in_window(project_id, start, end))
        result = await self.session.execute(stmt)
        page_views, sessions, visitors = result.one()
        return page_views or 0, sessions or 0, visitors or 0

    async def get_top_pages(
        self, project_id: str, start: datetime, end: datetime, limit: int = 10
    ) -> list[tuple[str, int, int]]:
        """Get (url, views, sessions) for the most viewed pages."""
        views = func.count(PageView.id).label("views")
        stmt = (
            select(
                PageView.page_url,
                views,
                func.count(distinct(PageView.session_id)).label("sessions"),
            )
            .where(*self._in_window(project_id, start, end))
            .group_by(PageView.page_url)
            .order_by(views.desc(), PageView.page_url.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [(url, count, sessions) for url, count, sessions in result.all()]

    async def get_referrer_sessions(
        self, project_id: str, start: datetime, end: datetime
    ) -> list[tuple[str | None, str]]:
        """Get distinct (referrer, session_id) pairs in a window."""
        stmt = (
            select(PageView.referrer, PageView.session_id)
            .where(*self._in_window(project_id, start, end))
            .distinct()
        )
        result = await self.session.execute(stmt)
        return [(referrer, session_id) for referrer, session_id in result.all()]

    async def get_device_sessions(
        self, project_id: str, start: datetime, end: datetime
    ) -> list[tuple[str, int]]:
        """Get (device_type, distinct sessions) ordered by sessions descending."""
        sessions = func.count(distinct(PageView.session_id)).label("sessions")
        stmt = (
            select(PageView.device_type, sessions)
            .where(
                *self._in_window(project_id, start, end),
                PageView.device_type.is_not(None),
            )
            .group_by(PageView.device_type)
            .order_by(sessions.desc(), PageView.device_type.asc())
        )
        result = await self.session.execute(stmt)
        return [(device, count) for device, count in result.all()]

    async def get_activity_rows(
        self, project_id: str, start: datetime, end: datetime
    ) -> list[tuple[datetime, str, str]]:
        """Get (timestamp, session_id, visitor_key) rows for time bucketing."""
        stmt = select(
            PageView.timestamp,
            PageView.session_id,
            func.coalesce(PageView.visitor_id, PageView.session_id),
        ).where(*self._in_window(project_id, start, end))
        result = await self.session.execute(stmt)
        return [tuple(row) for row in result.all()]

    async def get_recent(
        self, project_id: str, since: datetime, limit: int = 50
    ) -> list[PageView]:
        """Get page views strictly after ``since``, newest first."""
        stmt = (
            select(PageView)
            .where(PageView.project_id == project_id, PageView.timestamp > since)
            .order_by(PageView.timestamp.desc(), PageView.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_since(self, project_id: str, since: datetime) -> tuple[int, int]:
        """Count (page_views, distinct sessions) strictly after ``since``."""
        stmt = select(
            func.count(PageView.id),
            func.count(distinct(PageView.session_id)),
        ).where(PageView.project_id == project_id, PageView.timestamp > since)
        result = await self.session.execute(stmt)
        page_views, sessions = result.one()
        return page_views or 0, sessions or 0
