"""API routes."""

from fastapi import APIRouter

from insightify.api.routes import analytics, collect, heatmaps, realtime

api_router = APIRouter()

# Tracking snippet (public, rate limited)
api_router.include_router(collect.router, prefix="/collect", tags=["collect"])

# Dashboard
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(heatmaps.router, prefix="/heatmaps", tags=["heatmaps"])
api_router.include_router(realtime.router, prefix="/realtime", tags=["realtime"])
