"""Ingestion path for tracking batches.

A batch is validated in full before anything is written, appended through the
event store, and only then reflected in live presence and real-time feeds.
"""

import logging
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from insightify.core.exceptions import ValidationError
from insightify.domain.models.tracking import (
    EventRecord,
    HeatmapPointRecord,
    PageViewRecord,
)
from insightify.domain.services.aggregation_service import event_to_dict, page_view_to_dict
from insightify.domain.services.broadcast_gateway import BroadcastGateway
from insightify.domain.services.event_store import EventStore
from insightify.domain.services.presence_tracker import LivePresenceTracker
from insightify.utils.user_agent import parse_user_agent

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def validate_batch(
    model: type[RecordT], records: list[dict[str, Any] | BaseModel]
) -> list[RecordT]:
    """Validate every record of a batch.

    Raises:
        ValidationError: Listing each offending index and field
    """
    validated: list[RecordT] = []
    errors: list[dict[str, Any]] = []
    for index, record in enumerate(records):
        if isinstance(record, model):
            validated.append(record)
            continue
        if isinstance(record, BaseModel):
            record = record.model_dump()
        try:
            validated.append(model.model_validate(record))
        except PydanticValidationError as e:
            for error in e.errors():
                errors.append(
                    {
                        "index": index,
                        "field": ".".join(str(part) for part in error["loc"]),
                        "message": error["msg"],
                    }
                )

    if errors:
        raise ValidationError(
            f"{len({e['index'] for e in errors})} of {len(records)} records are invalid",
            errors=errors,
        )
    return validated


def with_client_info(record: PageViewRecord) -> PageViewRecord:
    """Fill device, browser and OS from the user agent where not supplied."""
    if record.device_type and record.browser and record.os:
        return record
    info = parse_user_agent(record.user_agent)
    return record.model_copy(
        update={
            "device_type": record.device_type or info.device_type,
            "browser": record.browser or info.browser,
            "os": record.os or info.os,
        }
    )


class IngestionService:
    """Validates and stores tracking batches, then notifies live consumers."""

    def __init__(
        self,
        session: AsyncSession,
        tracker: LivePresenceTracker | None = None,
        gateway: BroadcastGateway | None = None,
    ) -> None:
        """Initialize ingestion service.

        Args:
            session: Database session for the event store
            tracker: Live presence registry updated for page views
            gateway: Real-time gateway notified of every stored record
        """
        self.event_store = EventStore(session)
        self.tracker = tracker
        self.gateway = gateway

    async def ingest_page_views(
        self, project_id: str, records: list[dict[str, Any] | PageViewRecord]
    ) -> int:
        """Store page views, refresh presence and broadcast them.

        Returns:
            Number of records accepted
        """
        batch = [with_client_info(r) for r in validate_batch(PageViewRecord, records)]
        stored = await self.event_store.append_page_views(project_id, batch)

        for record, page_view in zip(batch, stored):
            if self.tracker is not None:
                self.tracker.record_page_view(
                    project_id,
                    record.session_id,
                    record.page_url,
                    user_agent=record.user_agent,
                    ip=record.ip_address,
                )
            if self.gateway is not None:
                self.gateway.broadcast_page_view(project_id, page_view_to_dict(page_view))
        return len(stored)

    async def ingest_events(
        self, project_id: str, records: list[dict[str, Any] | EventRecord]
    ) -> int:
        """Store events and broadcast them."""
        batch = validate_batch(EventRecord, records)
        stored = await self.event_store.append_events(project_id, batch)

        if self.gateway is not None:
            for event in stored:
                self.gateway.broadcast_event(project_id, event_to_dict(event))
        return len(stored)

    async def ingest_heatmap_points(
        self, project_id: str, records: list[dict[str, Any] | HeatmapPointRecord]
    ) -> int:
        """Merge heatmap observations and broadcast each merged point."""
        batch = validate_batch(HeatmapPointRecord, records)
        merged = await self.event_store.append_heatmap_points(project_id, batch)

        if self.gateway is not None:
            for point in merged:
                self.gateway.broadcast_heatmap(project_id, point)
        return len(batch)
