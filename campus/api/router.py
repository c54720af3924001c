"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from campus.api.webhooks import router as webhooks_router
from campus.api.checkin import router as checkin_router
from campus.api.journey import router as journey_router
from campus.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(webhooks_router)
api_router.include_router(checkin_router)
api_router.include_router(journey_router)
api_router.include_router(health_router)
