"""FastAPI dependencies for services and shared query parameters."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Annotated

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from insightify.core.clock import to_naive_utc, utcnow
from insightify.domain.services.aggregation_service import AggregationService
from insightify.domain.services.broadcast_gateway import BroadcastGateway
from insightify.domain.services.heatmap_service import HeatmapService
from insightify.domain.services.ingestion_service import IngestionService
from insightify.domain.services.presence_tracker import LivePresenceTracker
from insightify.persistence.database import get_db

DEFAULT_RANGE_DAYS = 30


@dataclass
class DateRange:
    start: datetime
    end: datetime


def get_date_range(
    start: Annotated[datetime | None, Query(description="Window start, inclusive")] = None,
    end: Annotated[datetime | None, Query(description="Window end, inclusive")] = None,
) -> DateRange:
    """Resolve the query window, defaulting to the last 30 days."""
    end = to_naive_utc(end) if end is not None else utcnow()
    start = to_naive_utc(start) if start is not None else end - timedelta(days=DEFAULT_RANGE_DAYS)
    return DateRange(start=start, end=end)


def get_presence_tracker(request: Request) -> LivePresenceTracker:
    return request.app.state.presence_tracker


def get_broadcast_gateway(request: Request) -> BroadcastGateway:
    return request.app.state.broadcast_gateway


def get_aggregation_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AggregationService:
    return AggregationService(db)


def get_heatmap_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HeatmapService:
    return HeatmapService(db)


def get_ingestion_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    tracker: Annotated[LivePresenceTracker, Depends(get_presence_tracker)],
    gateway: Annotated[BroadcastGateway, Depends(get_broadcast_gateway)],
) -> IngestionService:
    return IngestionService(db, tracker=tracker, gateway=gateway)


DateRangeDep = Annotated[DateRange, Depends(get_date_range)]
AggregationDep = Annotated[AggregationService, Depends(get_aggregation_service)]
HeatmapDep = Annotated[HeatmapService, Depends(get_heatmap_service)]
IngestionDep = Annotated[IngestionService, Depends(get_ingestion_service)]
TrackerDep = Annotated[LivePresenceTracker, Depends(get_presence_tracker)]
