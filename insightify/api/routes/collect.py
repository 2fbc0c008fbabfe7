"""Collector endpoints receiving batches from the tracking snippet."""

from typing import Any

from fastapi import APIRouter, Depends, Request, status

from insightify.api.deps import IngestionDep
from insightify.api.schemas.collect import CollectBatch, CollectResponse
from insightify.infrastructure.rate_limiter import (
    get_client_ip,
    project_client_key,
    rate_limit,
)

router = APIRouter(dependencies=[Depends(rate_limit("collect", key_func=project_client_key))])


def _with_request_context(request: Request, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Default the user agent and IP of each page view to the sender's."""
    user_agent = request.headers.get("user-agent")
    ip = get_client_ip(request)
    enriched = []
    for record in records:
        record = dict(record)
        if not record.get("user_agent") and user_agent:
            record["user_agent"] = user_agent
        if not record.get("ip_address"):
            record["ip_address"] = ip
        enriched.append(record)
    return enriched


@router.post(
    "/{project_id}/pageviews",
    response_model=CollectResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def collect_page_views(
    project_id: str,
    batch: CollectBatch,
    request: Request,
    ingestion: IngestionDep,
) -> CollectResponse:
    """Record a batch of page views."""
    records = _with_request_context(request, batch.records)
    accepted = await ingestion.ingest_page_views(project_id, records)
    return CollectResponse(accepted=accepted)


@router.post(
    "/{project_id}/events",
    response_model=CollectResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def collect_events(
    project_id: str,
    batch: CollectBatch,
    ingestion: IngestionDep,
) -> CollectResponse:
    """Record a batch of custom or system events."""
    accepted = await ingestion.ingest_events(project_id, batch.records)
    return CollectResponse(accepted=accepted)


@router.post(
    "/{project_id}/heatmap",
    response_model=CollectResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def collect_heatmap(
    project_id: str,
    batch: CollectBatch,
    ingestion: IngestionDep,
) -> CollectResponse:
    """Record a batch of heatmap observations."""
    accepted = await ingestion.ingest_heatmap_points(project_id, batch.records)
    return CollectResponse(accepted=accepted)
