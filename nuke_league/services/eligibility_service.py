"""Token-holding eligibility check for active traders."""

from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from nuke_league.db.crud import trader as crud
from nuke_league.ledger.base import LedgerGateway
from nuke_league.services.windows import current_season_id, utcnow


@dataclass
class EligibilityReport:
    checked: int = 0
    flagged: int = 0
    restored: int = 0
    failed: int = 0


async def validate_token_holdings(
    session: AsyncSession,
    ledger: LedgerGateway,
    *,
    mint: str,
    required: int,
    season_id: str | None = None,
) -> EligibilityReport:
    """Flag traders below ``required`` raw units of ``mint``; unflag those back above it.

    Past draw records are never touched: the flag only affects future ranking.
    """
    season_id = season_id or current_season_id()
    logger.info("[TOKEN-CHECK] Starting token validation for season {}", season_id)

    traders = await crud.get_season_traders(session, season_id, active_only=True)
    report = EligibilityReport()
    if not traders:
        logger.info("[TOKEN-CHECK] No active traders found for season {}", season_id)
        return report

    users = await crud.get_users_by_ids(session, [t.user_id for t in traders])
    targets = [
        (t.id, bool(t.sold_token), users[t.user_id].wallet_original if t.user_id in users else None)
        for t in traders
    ]

    for trader_id, flagged, wallet in targets:
        if not wallet:
            logger.warning("[TOKEN-CHECK] Skipping trader {} - missing wallet", trader_id)
            report.failed += 1
            continue
        try:
            balance = await ledger.get_token_balance(wallet, mint)
            holds = balance >= required
            now = utcnow()
            if not holds and not flagged:
                await crud.set_token_check(session, trader_id, at=now, sold_token=True)
                logger.info("[TOKEN-CHECK] FLAGGED: {}... ({} < {})", wallet[:8], balance, required)
                report.flagged += 1
            elif holds and flagged:
                await crud.set_token_check(session, trader_id, at=now, sold_token=False)
                logger.info("[TOKEN-CHECK] RESTORED: {}... ({} >= {})", wallet[:8], balance, required)
                report.restored += 1
            else:
                await crud.set_token_check(session, trader_id, at=now)
            await session.commit()
            report.checked += 1
        except Exception as e:
            logger.error("[TOKEN-CHECK] Failed to check trader {}: {}", trader_id, e)
            await session.rollback()
            report.failed += 1

    logger.info(
        "[TOKEN-CHECK] Completed: {} checked, {} flagged, {} restored, {} failed",
        report.checked, report.flagged, report.restored, report.failed,
    )
    return report
