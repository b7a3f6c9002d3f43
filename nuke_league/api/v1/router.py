"""Aggregate API v1 router."""

from fastapi import APIRouter

from nuke_league.api.v1.endpoints import draws, scheduler

api_router = APIRouter()

api_router.include_router(draws.router, prefix="/draws", tags=["draws"])
api_router.include_router(scheduler.router, prefix="/scheduler", tags=["scheduler"])
