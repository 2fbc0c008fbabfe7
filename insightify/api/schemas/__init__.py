"""API schemas package."""

from insightify.api.schemas.analytics import (
    EventTypesResponse,
    ExportResponse,
    HeatmapDataResponse,
    HeatmapDeleteResponse,
    LiveCountResponse,
    LiveVisitorResponse,
    RealtimeResponse,
    TimeSeriesResponse,
)
from insightify.api.schemas.collect import CollectBatch, CollectResponse

__all__ = [
    "CollectBatch",
    "CollectResponse",
    "EventTypesResponse",
    "ExportResponse",
    "HeatmapDataResponse",
    "HeatmapDeleteResponse",
    "LiveCountResponse",
    "LiveVisitorResponse",
    "RealtimeResponse",
    "TimeSeriesResponse",
]
