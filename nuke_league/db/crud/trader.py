"""CRUD operations for users and per-season traders."""

from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nuke_league.db.models.trader import DailyTrader
from nuke_league.db.models.user import User


async def get_users_by_ids(session: AsyncSession, user_ids: list[int]) -> dict[int, User]:
    if not user_ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(user_ids)))
    return {user.id: user for user in result.scalars().all()}


async def get_eligible_ranked(
    session: AsyncSession, season_id: str, *, limit: int | None = None, offset: int = 0
) -> list[DailyTrader]:
    """Active, unflagged traders of a season, best realized PnL first."""
    query = (
        select(DailyTrader)
        .where(
            DailyTrader.season_id == season_id,
            DailyTrader.is_active == True,  # noqa: E712
            or_(DailyTrader.sold_token == False, DailyTrader.sold_token.is_(None)),  # noqa: E712
        )
        .order_by(DailyTrader.realized_usd_pnl.desc(), DailyTrader.id)
        .offset(offset)
    )
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def get_season_traders(
    session: AsyncSession, season_id: str, *, active_only: bool = False
) -> list[DailyTrader]:
    query = select(DailyTrader).where(DailyTrader.season_id == season_id)
    if active_only:
        query = query.where(DailyTrader.is_active == True)  # noqa: E712
    result = await session.execute(query.order_by(DailyTrader.id))
    return list(result.scalars().all())


async def update_stats(session: AsyncSession, trader_id: int, stats: dict, *, at: datetime) -> None:
    await session.execute(
        update(DailyTrader)
        .where(DailyTrader.id == trader_id)
        .values(**stats, last_updated=at)
    )


async def set_token_check(
    session: AsyncSession, trader_id: int, *, at: datetime, sold_token: bool | None = None
) -> None:
    values: dict = {"last_token_check": at}
    if sold_token is not None:
        values["sold_token"] = sold_token
    await session.execute(
        update(DailyTrader).where(DailyTrader.id == trader_id).values(**values)
    )
