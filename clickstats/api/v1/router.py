from fastapi import APIRouter

from clickstats.api.v1 import analytics, health, visits

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(visits.router, prefix="/visits", tags=["visits"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
