"""Read-only draw record endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from nuke_league.api.deps import get_db
from nuke_league.db.crud import draw as crud
from nuke_league.schemas.draw import DrawRecordSchema, PaginatedDraws

router = APIRouter()


@router.get("/latest", response_model=DrawRecordSchema)
async def get_latest(db: AsyncSession = Depends(get_db)):
    """Most recent completed draw."""
    draw = await crud.get_latest(db)
    if not draw:
        raise HTTPException(status_code=404, detail="No draws found")
    return draw


@router.get("", response_model=PaginatedDraws)
async def get_draws(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    season_id: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    draws, total = await crud.get_draws(db, page=page, page_size=page_size, season_id=season_id)
    total_pages = (total + page_size - 1) // page_size if total > 0 else 0
    return PaginatedDraws(
        items=[DrawRecordSchema.model_validate(d) for d in draws],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


@router.get("/winners/{user_id}", response_model=list[DrawRecordSchema])
async def get_wins_for_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return await crud.get_wins_for_user(db, user_id)


@router.get("/{window_id}", response_model=DrawRecordSchema)
async def get_by_window(window_id: str, db: AsyncSession = Depends(get_db)):
    draw = await crud.get_by_window(db, window_id)
    if not draw:
        raise HTTPException(status_code=404, detail=f"Draw {window_id} not found")
    return draw
