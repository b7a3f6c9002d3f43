"""Participant ranking for prize draws."""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from nuke_league.db.crud import trader as crud
from nuke_league.services.lottery import DRAW_SIZE, ParticipantRecord, win_chance_for_rank

# Rows fetched per page beyond n, absorbing traders with no payout wallet.
PAGE_SLACK = 5


async def rank_top_n(
    session: AsyncSession, season_id: str, n: int = DRAW_SIZE
) -> list[ParticipantRecord]:
    """Return up to ``n`` eligible participants ranked by realized PnL.

    Flagged traders never appear. Ties keep trader insertion order. A short
    list means the season cannot support a draw yet; it is not an error.
    """
    if n > DRAW_SIZE:
        # Fail before touching storage: there is no chance table for rank n.
        win_chance_for_rank(n)

    ranked: list[ParticipantRecord] = []
    page_size = n + PAGE_SLACK
    offset = 0
    while len(ranked) < n:
        traders = await crud.get_eligible_ranked(session, season_id, limit=page_size, offset=offset)
        users = await crud.get_users_by_ids(session, [t.user_id for t in traders])
        for trader in traders:
            if len(ranked) == n:
                break
            user = users.get(trader.user_id)
            if user is None or not user.wallet_original:
                logger.warning(
                    "Skipping trader {} in season {}: no payout wallet", trader.id, season_id
                )
                continue
            rank = len(ranked) + 1
            ranked.append(ParticipantRecord(
                rank=rank,
                user_id=user.id,
                wallet=user.wallet_original,
                name=user.name,
                realized_pnl=trader.realized_usd_pnl,
                win_chance=win_chance_for_rank(rank),
            ))
        if len(traders) < page_size:
            break
        offset += page_size

    return ranked
