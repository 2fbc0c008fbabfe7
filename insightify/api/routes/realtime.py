"""Live visitor endpoints and the real-time activity WebSocket."""

import asyncio
import contextlib
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from insightify.api.deps import AggregationDep, TrackerDep
from insightify.api.schemas.analytics import (
    LiveCountResponse,
    LiveVisitorResponse,
    RealtimeResponse,
)
from insightify.core.clock import utcnow
from insightify.domain.services.broadcast_gateway import BroadcastGateway, Subscription

logger = logging.getLogger(__name__)

router = APIRouter()

RECENT_ACTIVITY_LIMIT = 50


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket) -> None:
    """Stream project activity to a dashboard.

    Clients send ``{"action": "join" | "leave", "project_id": ...}`` and
    receive every page view, event and heatmap message for joined projects.
    """
    gateway: BroadcastGateway = websocket.app.state.broadcast_gateway
    await websocket.accept()
    client_id = uuid.uuid4().hex
    subscription = gateway.connect(client_id)

    sender = asyncio.create_task(_forward_messages(websocket, subscription))
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                message = None
            action = message.get("action") if isinstance(message, dict) else None
            project_id = message.get("project_id") if isinstance(message, dict) else None
            if action not in ("join", "leave") or not project_id:
                await websocket.send_json({"type": "error", "detail": "Expected join or leave with a project_id"})
                continue
            if action == "join":
                gateway.join(client_id, str(project_id))
            else:
                gateway.leave(client_id, str(project_id))
            await websocket.send_json({"type": action, "project_id": str(project_id)})
    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sender
        gateway.disconnect(client_id)


async def _forward_messages(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        message = await subscription.queue.get()
        try:
            await websocket.send_json(jsonable_encoder(message))
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Stopped forwarding to {subscription.client_id}: {e}")
            return


@router.get("/{project_id}", response_model=RealtimeResponse)
async def get_realtime(
    project_id: str,
    tracker: TrackerDep,
    analytics: AggregationDep,
) -> RealtimeResponse:
    """Live visitors with last-hour stats and recent activity."""
    visitors = tracker.get_live_visitors(project_id)
    since = utcnow() - tracker.activity_window
    stats = await analytics.get_realtime_stats(project_id)
    recent_page_views = await analytics.get_recent_page_views(
        project_id, since, limit=RECENT_ACTIVITY_LIMIT
    )
    recent_events = await analytics.get_recent_events(
        project_id, since, limit=RECENT_ACTIVITY_LIMIT
    )
    return RealtimeResponse(
        live_count=len(visitors),
        live_visitors=[LiveVisitorResponse.model_validate(v) for v in visitors],
        stats=stats,
        recent_page_views=recent_page_views,
        recent_events=recent_events,
    )


@router.get("/{project_id}/count", response_model=LiveCountResponse)
async def get_live_count(project_id: str, tracker: TrackerDep) -> LiveCountResponse:
    return LiveCountResponse(project_id=project_id, live_count=tracker.get_live_visitor_count(project_id))
