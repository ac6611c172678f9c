"""
Wayquest Backend - API V1 Router
Main router for API version 1 endpoints
"""

from fastapi import APIRouter

from app.api.v1.endpoints import location, quests


api_router = APIRouter()


# === Location Routes ===
api_router.include_router(
    location.router,
    prefix="/sessions",
    tags=["Location"]
)


# === Quest Routes ===
api_router.include_router(
    quests.router,
    prefix="/sessions",
    tags=["Quests"]
)
