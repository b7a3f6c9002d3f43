"""CRUD operations for draw records and payout attempts."""

from datetime import datetime

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nuke_league.db.models.draw import DrawRecord, PayoutAttempt

OPEN_ATTEMPT_STATUSES = ("pending", "unknown")


# --- DrawRecord ---

async def get_by_window(session: AsyncSession, window_id: str) -> DrawRecord | None:
    result = await session.execute(
        select(DrawRecord).where(DrawRecord.window_id == window_id)
    )
    return result.scalar_one_or_none()


async def get_latest(session: AsyncSession) -> DrawRecord | None:
    result = await session.execute(
        select(DrawRecord).order_by(desc(DrawRecord.window_id)).limit(1)
    )
    return result.scalar_one_or_none()


async def get_draws(
    session: AsyncSession,
    *,
    page: int = 1,
    page_size: int = 20,
    season_id: str | None = None,
) -> tuple[list[DrawRecord], int]:
    query = select(DrawRecord)
    count_query = select(func.count(DrawRecord.id))
    if season_id:
        query = query.where(DrawRecord.season_id == season_id)
        count_query = count_query.where(DrawRecord.season_id == season_id)

    total = (await session.execute(count_query)).scalar() or 0

    query = query.order_by(desc(DrawRecord.window_id))
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await session.execute(query)
    return list(result.scalars().all()), total


async def get_wins_for_user(session: AsyncSession, user_id: int) -> list[DrawRecord]:
    result = await session.execute(
        select(DrawRecord)
        .where(DrawRecord.winner_user_id == user_id)
        .order_by(desc(DrawRecord.window_id))
    )
    return list(result.scalars().all())


def add_draw_record(session: AsyncSession, record: dict) -> DrawRecord:
    """Stage a draw record; the caller's commit makes it durable."""
    obj = DrawRecord(**record)
    session.add(obj)
    return obj


# --- PayoutAttempt ---

async def get_attempt(session: AsyncSession, window_id: str) -> PayoutAttempt | None:
    result = await session.execute(
        select(PayoutAttempt).where(PayoutAttempt.window_id == window_id)
    )
    return result.scalar_one_or_none()


async def reopen_failed_attempt(
    session: AsyncSession, window_id: str, values: dict, *, at: datetime
) -> bool:
    """Move a ``failed`` attempt back to ``pending``. False if another run got there first."""
    result = await session.execute(
        update(PayoutAttempt)
        .where(PayoutAttempt.window_id == window_id, PayoutAttempt.status == "failed")
        .values(
            **values,
            status="pending",
            tx_signature=None,
            error_message=None,
            updated_at=at,
        )
    )
    return result.rowcount == 1


async def set_attempt_status(
    session: AsyncSession,
    window_id: str,
    status: str,
    *,
    at: datetime,
    tx_signature: str | None = None,
    error_message: str | None = None,
) -> None:
    values: dict = {"status": status, "updated_at": at}
    if tx_signature is not None:
        values["tx_signature"] = tx_signature
    if error_message is not None:
        values["error_message"] = error_message[:1000]
    await session.execute(
        update(PayoutAttempt).where(PayoutAttempt.window_id == window_id).values(**values)
    )


async def list_open_attempts(session: AsyncSession, older_than: datetime) -> list[PayoutAttempt]:
    result = await session.execute(
        select(PayoutAttempt)
        .where(
            PayoutAttempt.status.in_(OPEN_ATTEMPT_STATUSES),
            PayoutAttempt.updated_at <= older_than,
        )
        .order_by(PayoutAttempt.window_id)
    )
    return list(result.scalars().all())
