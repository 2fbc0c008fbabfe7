"""Heatmap aggregator: read-side views over merged heatmap points."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from insightify.core.clock import to_naive_utc
from insightify.core.exceptions import ValidationError
from insightify.domain.models.analytics import (
    ElementActivity,
    HeatmapCell,
    HeatmapProjectStats,
)
from insightify.persistence.errors import storage_errors
from insightify.persistence.models.heatmap import HEATMAP_TYPES, HeatmapPage, HeatmapPoint
from insightify.persistence.repositories.heatmap_repository import HeatmapRepository

logger = logging.getLogger(__name__)

ELEMENT_ANALYSIS_LIMIT = 100


def heatmap_page_to_dict(page: HeatmapPage) -> dict[str, Any]:
    """Serialize a heatmap page rollup."""
    return {
        "page_url": page.page_url,
        "page_title": page.page_title,
        "total_clicks": page.total_clicks,
        "total_scrolls": page.total_scrolls,
        "total_moves": page.total_moves,
        "last_activity": page.last_activity,
    }


def heatmap_point_to_dict(point: HeatmapPoint) -> dict[str, Any]:
    """Serialize a stored heatmap point."""
    return {
        "page_url": point.page_url,
        "page_title": point.page_title,
        "heatmap_type": point.heatmap_type,
        "x": point.x,
        "y": point.y,
        "count": point.count,
        "element_selector": point.element_selector,
        "element_text": point.element_text,
        "timestamp": point.timestamp,
    }


def _check_type(heatmap_type: str | None) -> None:
    if heatmap_type is not None and heatmap_type not in HEATMAP_TYPES:
        raise ValidationError(
            f"Unknown heatmap type '{heatmap_type}', expected one of {', '.join(HEATMAP_TYPES)}"
        )


class HeatmapService:
    """Heatmap queries for dashboards and exports."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize heatmap service."""
        self.session = session
        self.heatmap_repo = HeatmapRepository(session)

    async def get_aggregated_by_page(
        self, project_id: str, page_url: str, heatmap_type: str = "click"
    ) -> list[HeatmapCell]:
        """Sum counts per coordinate for one page and type, highest first.

        Rows sharing a coordinate are summed so the result is correct even if
        concurrent writers left more than one row for a key.
        """
        _check_type(heatmap_type)
        async with storage_errors("get_aggregated_by_page"):
            rows = await self.heatmap_repo.get_aggregated_by_page(
                project_id, page_url, heatmap_type
            )
        return [HeatmapCell(x=x, y=y, count=count) for x, y, count in rows]

    async def get_element_analysis(
        self, project_id: str, page_url: str, heatmap_type: str = "click"
    ) -> list[ElementActivity]:
        """Top elements by summed count; points without a selector are skipped."""
        _check_type(heatmap_type)
        async with storage_errors("get_element_analysis"):
            rows = await self.heatmap_repo.get_element_counts(
                project_id, page_url, heatmap_type, ELEMENT_ANALYSIS_LIMIT
            )
        return [
            ElementActivity(element_selector=selector, element_text=text, count=count)
            for selector, text, count in rows
        ]

    async def get_project_stats(self, project_id: str) -> HeatmapProjectStats | None:
        """Totals per heatmap type and the most active page.

        Returns:
            Stats, or None when the project has no heatmap data
        """
        async with storage_errors("get_project_stats"):
            most_active = await self.heatmap_repo.get_most_active_page(project_id)
            if most_active is None:
                return None
            pages, clicks, scrolls, moves = await self.heatmap_repo.get_type_totals(project_id)

        return HeatmapProjectStats(
            total_pages=pages,
            total_clicks=clicks,
            total_scrolls=scrolls,
            total_moves=moves,
            total_activity=clicks + scrolls + moves,
            most_active_page=most_active[0],
        )

    async def get_pages(self, project_id: str) -> list[dict[str, Any]]:
        """List pages with heatmap data, most recently active first."""
        async with storage_errors("get_pages"):
            pages = await self.heatmap_repo.list_pages(project_id)
        return [heatmap_page_to_dict(page) for page in pages]

    async def get_points_by_date_range(
        self,
        project_id: str,
        page_url: str,
        start: datetime,
        end: datetime,
        heatmap_type: str = "click",
    ) -> list[dict[str, Any]]:
        """Raw points for a page last updated inside the window."""
        _check_type(heatmap_type)
        start, end = to_naive_utc(start), to_naive_utc(end)
        if start > end:
            raise ValidationError("start must not be after end")
        async with storage_errors("get_points_by_date_range"):
            points = await self.heatmap_repo.get_points(
                project_id, page_url=page_url, heatmap_type=heatmap_type, start=start, end=end
            )
        return [heatmap_point_to_dict(point) for point in points]

    async def export_points(
        self,
        project_id: str,
        page_url: str | None = None,
        heatmap_type: str | None = None,
    ) -> list[dict[str, Any]]:
        """Raw points for export, optionally narrowed to one page or type."""
        _check_type(heatmap_type)
        async with storage_errors("export_points"):
            points = await self.heatmap_repo.get_points(
                project_id, page_url=page_url, heatmap_type=heatmap_type
            )
        return [heatmap_point_to_dict(point) for point in points]

    async def delete_page(self, project_id: str, page_url: str) -> bool:
        """Delete a page's points and rollup.

        Returns:
            True if anything was deleted; deleting an unknown page is a no-op
        """
        async with storage_errors("delete_page"):
            try:
                removed = await self.heatmap_repo.delete_page(project_id, page_url)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        if removed:
            logger.info(
                f"Deleted heatmap data for page {page_url}",
                extra={"project_id": project_id, "rows": removed},
            )
        return removed > 0
