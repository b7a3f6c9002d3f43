"""Stats sync: refresh every trader of the current season from the portfolio API."""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from nuke_league.db.crud import trader as crud
from nuke_league.portfolio.client import PortfolioClient, transform_to_trader_stats
from nuke_league.services.windows import current_season_id, utcnow


@dataclass
class SweepReport:
    total: int = 0
    succeeded: int = 0
    failed: int = 0


async def sync_season_stats(
    session: AsyncSession,
    client: PortfolioClient,
    season_id: str | None = None,
) -> SweepReport:
    """Update each trader in turn; one trader's failure never stops the sweep."""
    season_id = season_id or current_season_id()
    logger.info("[STATS] Starting trader stats update for season {}", season_id)

    traders = await crud.get_season_traders(session, season_id)
    report = SweepReport(total=len(traders))
    if not traders:
        logger.info("[STATS] No traders found for season {}", season_id)
        return report

    users = await crud.get_users_by_ids(session, [t.user_id for t in traders])
    # Plain values only: a rollback below expires every loaded ORM object.
    targets = [
        (t.id, users[t.user_id].wallet_original if t.user_id in users else None)
        for t in traders
    ]
    logger.info("[STATS] Found {} traders to update", len(targets))

    for trader_id, wallet in targets:
        if not wallet:
            logger.warning("[STATS] Skipping trader {} - missing wallet", trader_id)
            report.failed += 1
            continue
        try:
            portfolio = await client.get_wallet_portfolio(wallet)
            await crud.update_stats(
                session, trader_id, transform_to_trader_stats(portfolio), at=utcnow()
            )
            await session.commit()
            report.succeeded += 1
        except Exception as e:
            logger.error("[STATS] Failed to update trader {}: {}", trader_id, e)
            await session.rollback()
            report.failed += 1

    logger.info("[STATS] Updated {}/{} traders", report.succeeded, report.total)
    if report.failed:
        logger.warning("[STATS] Failed to update {} traders", report.failed)
    return report
