"""Scheduler status endpoint."""

from fastapi import APIRouter

from nuke_league.scheduler.scheduler import get_scheduler_status
from nuke_league.schemas.draw import JobStatusSchema

router = APIRouter()


@router.get("/status", response_model=list[JobStatusSchema])
async def scheduler_status():
    """Interval, next run and last outcome of every recurring job."""
    return get_scheduler_status()
