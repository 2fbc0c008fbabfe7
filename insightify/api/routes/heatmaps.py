"""Heatmap query and maintenance endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from insightify.api.deps import DateRangeDep, HeatmapDep
from insightify.api.schemas.analytics import HeatmapDataResponse, HeatmapDeleteResponse
from insightify.domain.models.analytics import ElementActivity, HeatmapProjectStats

router = APIRouter()

PageUrl = Annotated[str, Query(min_length=1, description="Page URL as recorded by the snippet")]
HeatmapType = Annotated[str, Query(alias="type", description="click, scroll or move")]


@router.get("/{project_id}/pages")
async def list_pages(project_id: str, heatmaps: HeatmapDep) -> list[dict]:
    """Pages with heatmap data, most recently active first."""
    return await heatmaps.get_pages(project_id)


@router.get("/{project_id}/stats", response_model=HeatmapProjectStats | None)
async def get_stats(project_id: str, heatmaps: HeatmapDep) -> HeatmapProjectStats | None:
    """Totals per interaction type; null when the project has no heatmap data."""
    return await heatmaps.get_project_stats(project_id)


@router.get("/{project_id}/pages/data", response_model=HeatmapDataResponse)
async def get_page_data(
    project_id: str,
    url: PageUrl,
    heatmaps: HeatmapDep,
    heatmap_type: HeatmapType = "click",
) -> HeatmapDataResponse:
    points = await heatmaps.get_aggregated_by_page(project_id, url, heatmap_type)
    return HeatmapDataResponse(page_url=url, heatmap_type=heatmap_type, points=points)


@router.get("/{project_id}/pages/elements", response_model=list[ElementActivity])
async def get_page_elements(
    project_id: str,
    url: PageUrl,
    heatmaps: HeatmapDep,
    heatmap_type: HeatmapType = "click",
) -> list[ElementActivity]:
    return await heatmaps.get_element_analysis(project_id, url, heatmap_type)


@router.get("/{project_id}/pages/points")
async def get_page_points(
    project_id: str,
    url: PageUrl,
    window: DateRangeDep,
    heatmaps: HeatmapDep,
    heatmap_type: HeatmapType = "click",
) -> list[dict]:
    """Raw points for a page updated inside the window."""
    return await heatmaps.get_points_by_date_range(
        project_id, url, window.start, window.end, heatmap_type
    )


@router.get("/{project_id}/export")
async def export_points(
    project_id: str,
    heatmaps: HeatmapDep,
    url: Annotated[str | None, Query()] = None,
    heatmap_type: Annotated[str | None, Query(alias="type")] = None,
) -> list[dict]:
    return await heatmaps.export_points(project_id, page_url=url, heatmap_type=heatmap_type)


@router.delete("/{project_id}/pages", response_model=HeatmapDeleteResponse)
async def delete_page(project_id: str, url: PageUrl, heatmaps: HeatmapDep) -> HeatmapDeleteResponse:
    """Delete a page's heatmap data; unknown pages report ``deleted: false``."""
    deleted = await heatmaps.delete_page(project_id, url)
    return HeatmapDeleteResponse(page_url=url, deleted=deleted)
