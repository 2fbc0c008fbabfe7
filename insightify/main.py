"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from insightify.api.errors import register_exception_handlers
from insightify.api.middleware import RequestContextMiddleware
from insightify.api.routes import api_router
from insightify.domain.services.broadcast_gateway import BroadcastGateway
from insightify.domain.services.presence_tracker import LivePresenceTracker
from insightify.infrastructure.redis import redis_client
from insightify.logging_config import setup_logging
from insightify.settings import settings
from insightify.workers import retention_worker

# Setup logging
setup_logging()


def create_presence_tracker() -> LivePresenceTracker:
    return LivePresenceTracker(
        activity_window=settings.live_activity_window_seconds,
        purge_after=settings.live_purge_after_seconds,
        sweep_interval=settings.live_sweep_interval_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    await redis_client.connect()
    app.state.presence_tracker.start()
    yield
    # Shutdown
    await app.state.presence_tracker.stop()
    await redis_client.disconnect()


# Create FastAPI app
app = FastAPI(
    title="Insightify Analytics API",
    description="Website analytics aggregation and real-time visitor tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# Live state is per process and shared by every request
app.state.presence_tracker = create_presence_tracker()
app.state.broadcast_gateway = BroadcastGateway(queue_size=settings.broadcast_queue_size)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

# Include API routes
app.include_router(api_router, prefix=settings.api_v1_prefix)

# Include worker routes (for the scheduler)
app.include_router(retention_worker.router, prefix="/workers", tags=["workers"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
