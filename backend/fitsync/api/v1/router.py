"""
API Router v1

Combines all route modules.
"""

from fastapi import APIRouter

from fitsync.api.v1.routes import activities, athlete, auth, sync

api_router = APIRouter()

api_router.include_router(auth.router, tags=["Auth"])
api_router.include_router(athlete.router, tags=["Athlete"])
api_router.include_router(activities.router, tags=["Activities"])
api_router.include_router(sync.router, tags=["Sync"])
