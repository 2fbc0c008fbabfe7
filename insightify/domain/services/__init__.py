"""Domain services."""

from insightify.domain.services.aggregation_service import AggregationService
from insightify.domain.services.broadcast_gateway import BroadcastGateway
from insightify.domain.services.event_store import EventStore
from insightify.domain.services.heatmap_service import HeatmapService
from insightify.domain.services.ingestion_service import IngestionService
from insightify.domain.services.presence_tracker import LivePresenceTracker

__all__ = [
    "AggregationService",
    "BroadcastGateway",
    "EventStore",
    "HeatmapService",
    "IngestionService",
    "LivePresenceTracker",
]
