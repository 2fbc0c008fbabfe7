"""Heatmap point and page rollup repository."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, delete, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from insightify.persistence.models.heatmap import HeatmapPage, HeatmapPoint
from insightify.persistence.repositories.base import BaseRepository
from insightify.persistence.upsert import upsert_insert


@dataclass
class PageActivity:
    """Per-page counters contributed by one ingest batch."""

    page_url: str
    page_title: str | None = None
    clicks: int = 0
    scrolls: int = 0
    moves: int = 0

    def add(self, heatmap_type: str, count: int) -> None:
        if heatmap_type == "click":
            self.clicks += count
        elif heatmap_type == "scroll":
            self.scrolls += count
        elif heatmap_type == "move":
            self.moves += count


class HeatmapRepository(BaseRepository[HeatmapPoint]):
    """Repository for heatmap points and their page rollups."""

    def __init__(self, session: AsyncSession):
        """Initialize heatmap repository."""
        super().__init__(HeatmapPoint, session)

    async def merge_points(self, project_id: str, points: list[dict]) -> None:
        """Insert points, incrementing ``count`` on (page, x, y, type) conflicts.

        ``points`` must already be deduplicated by key; the increment is a
        single atomic statement so concurrent batches commute.
        """
        if not points:
            return
        table = HeatmapPoint.__table__
        stmt = upsert_insert(self.dialect_name, table).values(
            [{"project_id": project_id, **point} for point in points]
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                table.c.project_id,
                table.c.page_url,
                table.c.x,
                table.c.y,
                table.c.heatmap_type,
            ],
            set_={
                "count": table.c["count"] + excluded["count"],
                "timestamp": case(
                    (excluded.timestamp > table.c.timestamp, excluded.timestamp),
                    else_=table.c.timestamp,
                ),
                "page_title": func.coalesce(excluded.page_title, table.c.page_title),
                "element_selector": func.coalesce(
                    excluded.element_selector, table.c.element_selector
                ),
                "element_text": func.coalesce(excluded.element_text, table.c.element_text),
            },
        )
        await self.session.execute(stmt)

    async def merge_page(
        self, project_id: str, activity: PageActivity, now: datetime
    ) -> None:
        """Create or increment the rollup row for one page."""
        table = HeatmapPage.__table__
        stmt = upsert_insert(self.dialect_name, table).values(
            project_id=project_id,
            page_url=activity.page_url,
            page_title=activity.page_title,
            total_clicks=activity.clicks,
            total_scrolls=activity.scrolls,
            total_moves=activity.moves,
            last_activity=now,
            updated_at=now,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.project_id, table.c.page_url],
            set_={
                "page_title": func.coalesce(excluded.page_title, table.c.page_title),
                "total_clicks": table.c.total_clicks + excluded.total_clicks,
                "total_scrolls": table.c.total_scrolls + excluded.total_scrolls,
                "total_moves": table.c.total_moves + excluded.total_moves,
                "last_activity": excluded.last_activity,
                "updated_at": excluded.updated_at,
            },
        )
        await self.session.execute(stmt)

    async def get_aggregated_by_page(
        self, project_id: str, page_url: str, heatmap_type: str
    ) -> list[tuple[int, int, int]]:
        """Get (x, y, count) summed per coordinate, highest count first."""
        total = func.sum(HeatmapPoint.count).label("count")
        stmt = (
            select(HeatmapPoint.x, HeatmapPoint.y, total)
            .where(
                HeatmapPoint.project_id == project_id,
                HeatmapPoint.page_url == page_url,
                HeatmapPoint.heatmap_type == heatmap_type,
            )
            .group_by(HeatmapPoint.x, HeatmapPoint.y)
            .order_by(total.desc(), HeatmapPoint.x.asc(), HeatmapPoint.y.asc())
        )
        result = await self.session.execute(stmt)
        return [(x, y, count) for x, y, count in result.all()]

    async def get_element_counts(
        self, project_id: str, page_url: str, heatmap_type: str, limit: int = 100
    ) -> list[tuple[str, str | None, int]]:
        """Get (selector, text, count) for points carrying an element selector."""
        total = func.sum(HeatmapPoint.count).label("count")
        stmt = (
            select(HeatmapPoint.element_selector, HeatmapPoint.element_text, total)
            .where(
                HeatmapPoint.project_id == project_id,
                HeatmapPoint.page_url == page_url,
                HeatmapPoint.heatmap_type == heatmap_type,
                HeatmapPoint.element_selector.is_not(None),
            )
            .group_by(HeatmapPoint.element_selector, HeatmapPoint.element_text)
            .order_by(total.desc(), HeatmapPoint.element_selector.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [(selector, text, count) for selector, text, count in result.all()]

    async def get_type_totals(self, project_id: str) -> tuple[int, int, int, int]:
        """Get (pages, clicks, scrolls, moves) across a project."""

        def _sum_for(heatmap_type: str):
            return func.coalesce(
                func.sum(
                    case((HeatmapPoint.heatmap_type == heatmap_type, HeatmapPoint.count), else_=0)
                ),
                0,
            )

        stmt = select(
            func.count(distinct(HeatmapPoint.page_url)),
            _sum_for("click"),
            _sum_for("scroll"),
            _sum_for("move"),
        ).where(HeatmapPoint.project_id == project_id)
        result = await self.session.execute(stmt)
        pages, clicks, scrolls, moves = result.one()
        return pages or 0, clicks or 0, scrolls or 0, moves or 0

    async def get_most_active_page(self, project_id: str) -> tuple[str, int] | None:
        """Get the page with the highest combined count, if any."""
        total = func.sum(HeatmapPoint.count).label("total_activity")
        stmt = (
            select(HeatmapPoint.page_url, total)
            .where(HeatmapPoint.project_id == project_id)
            .group_by(HeatmapPoint.page_url)
            .order_by(total.desc(), HeatmapPoint.page_url.asc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def list_pages(self, project_id: str) -> list[HeatmapPage]:
        """List page rollups, most recently active first."""
        stmt = (
            select(HeatmapPage)
            .where(HeatmapPage.project_id == project_id)
            .order_by(HeatmapPage.last_activity.desc(), HeatmapPage.page_url.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_points(
        self,
        project_id: str,
        page_url: str | None = None,
        heatmap_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[HeatmapPoint]:
        """Get raw point rows with optional page, type and window filters."""
        stmt = select(HeatmapPoint).where(HeatmapPoint.project_id == project_id)
        if page_url is not None:
            stmt = stmt.where(HeatmapPoint.page_url == page_url)
        if heatmap_type is not None:
            stmt = stmt.where(HeatmapPoint.heatmap_type == heatmap_type)
        if start is not None:
            stmt = stmt.where(HeatmapPoint.timestamp >= start)
        if end is not None:
            stmt = stmt.where(HeatmapPoint.timestamp <= end)
        stmt = stmt.order_by(HeatmapPoint.timestamp.desc(), HeatmapPoint.id.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_page(self, project_id: str, page_url: str) -> int:
        """Delete a page's points and rollup. Returns the number of rows removed."""
        points = await self.session.execute(
            delete(HeatmapPoint).where(
                HeatmapPoint.project_id == project_id,
                HeatmapPoint.page_url == page_url,
            )
        )
        pages = await self.session.execute(
            delete(HeatmapPage).where(
                HeatmapPage.project_id == project_id,
                HeatmapPage.page_url == page_url,
            )
        )
        return (points.rowcount or 0) + (pages.rowcount or 0)
