"""Project-scoped fan-out of tracking activity to dashboard clients.

Delivery is best effort: a message for a project with no subscribers is
dropped, and a subscriber whose queue is full misses that message.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from insightify.core.clock import utcnow

logger = logging.getLogger(__name__)

MESSAGE_PAGE_VIEW = "pageview"
MESSAGE_EVENT = "event"
MESSAGE_HEATMAP = "heatmap"


@dataclass
class Subscription:
    """A connected client and the queue its messages are delivered to."""

    client_id: str
    queue: asyncio.Queue
    projects: set[str] = field(default_factory=set)


class BroadcastGateway:
    """In-process publish/subscribe hub keyed by project id."""

    def __init__(self, queue_size: int = 256) -> None:
        """Initialize broadcast gateway.

        Args:
            queue_size: Maximum undelivered messages buffered per client
        """
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._clients: dict[str, Subscription] = {}
        self._groups: dict[str, set[str]] = {}

    def connect(self, client_id: str) -> Subscription:
        """Register a client, reusing its subscription if already connected."""
        with self._lock:
            subscription = self._clients.get(client_id)
            if subscription is None:
                subscription = Subscription(
                    client_id=client_id,
                    queue=asyncio.Queue(maxsize=self.queue_size),
                )
                self._clients[client_id] = subscription
        logger.debug(f"Realtime client connected: {client_id}")
        return subscription

    def join(self, client_id: str, project_id: str) -> None:
        """Subscribe a connected client to a project's activity."""
        with self._lock:
            subscription = self._clients.get(client_id)
            if subscription is None:
                raise KeyError(f"Unknown client {client_id}")
            subscription.projects.add(project_id)
            self._groups.setdefault(project_id, set()).add(client_id)
        logger.debug(
            f"Client {client_id} joined project room",
            extra={"project_id": project_id},
        )

    def leave(self, client_id: str, project_id: str) -> None:
        """Unsubscribe a client from one project; unknown pairs are ignored."""
        with self._lock:
            subscription = self._clients.get(client_id)
            if subscription is not None:
                subscription.projects.discard(project_id)
            self._discard_member(project_id, client_id)

    def disconnect(self, client_id: str) -> None:
        """Drop a client and prune it from every project group."""
        with self._lock:
            subscription = self._clients.pop(client_id, None)
            if subscription is None:
                return
            for project_id in subscription.projects:
                self._discard_member(project_id, client_id)
        logger.debug(f"Realtime client disconnected: {client_id}")

    def _discard_member(self, project_id: str, client_id: str) -> None:
        members = self._groups.get(project_id)
        if members is None:
            return
        members.discard(client_id)
        if not members:
            del self._groups[project_id]

    def subscriber_count(self, project_id: str) -> int:
        with self._lock:
            return len(self._groups.get(project_id, ()))

    def broadcast_page_view(self, project_id: str, record: dict[str, Any]) -> int:
        return self._broadcast(project_id, MESSAGE_PAGE_VIEW, record)

    def broadcast_event(self, project_id: str, record: dict[str, Any]) -> int:
        return self._broadcast(project_id, MESSAGE_EVENT, record)

    def broadcast_heatmap(self, project_id: str, record: dict[str, Any]) -> int:
        return self._broadcast(project_id, MESSAGE_HEATMAP, record)

    def _broadcast(self, project_id: str, message_type: str, record: dict[str, Any]) -> int:
        """Deliver a message to each subscriber of a project.

        Returns:
            Number of subscribers the message was queued for
        """
        with self._lock:
            targets = [
                self._clients[client_id].queue
                for client_id in self._groups.get(project_id, ())
                if client_id in self._clients
            ]
        if not targets:
            return 0

        message = {
            "type": message_type,
            "project_id": project_id,
            "data": record,
            "timestamp": utcnow().isoformat(),
        }
        delivered = 0
        for queue in targets:
            try:
                queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.debug(
                    f"Dropped {message_type} message for slow client",
                    extra={"project_id": project_id},
                )
        return delivered
