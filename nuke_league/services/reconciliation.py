"""Reconcile payouts whose outcome was never observed.

A payout attempt left ``unknown`` (confirmation timed out) or ``pending``
(process died mid-transfer) blocks its window. This sweep asks the ledger
what actually happened: a landed transfer gets its draw record written from
the attempt snapshot; a transfer that provably did not land is marked
``failed`` so the next draw tick may retry the window.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nuke_league.config import settings
from nuke_league.db.crud import draw as crud
from nuke_league.ledger.base import LedgerGateway, TransferStatus
from nuke_league.services.draw_service import record_from_snapshot
from nuke_league.services.windows import utcnow


@dataclass
class ReconciliationReport:
    examined: int = 0
    completed: int = 0
    reopened: int = 0
    unresolved: int = 0


@dataclass(frozen=True)
class _OpenAttempt:
    window_id: str
    status: str
    winner_wallet: str
    prize_lamports: int
    draw_snapshot: dict
    tx_signature: str | None
    created_at: datetime


async def _locate_transfer(ledger: LedgerGateway, attempt: _OpenAttempt) -> str | None:
    """Signature of the landed payout, or None when it provably did not land."""
    if attempt.tx_signature:
        status = await ledger.get_transfer_status(attempt.tx_signature)
        if status == TransferStatus.CONFIRMED:
            return attempt.tx_signature
        if status == TransferStatus.FAILED:
            return None
    signature = await ledger.find_transfer(
        attempt.winner_wallet,
        attempt.prize_lamports,
        since=attempt.created_at - timedelta(minutes=5),
    )
    return signature


async def reconcile_payouts(
    session_factory: async_sessionmaker[AsyncSession],
    ledger: LedgerGateway,
    *,
    grace_seconds: int | None = None,
    now: datetime | None = None,
) -> ReconciliationReport:
    now = now or utcnow()
    grace = timedelta(seconds=grace_seconds if grace_seconds is not None else settings.RECONCILE_GRACE_SECONDS)

    async with session_factory() as session:
        rows = await crud.list_open_attempts(session, older_than=now - grace)
        attempts = [
            _OpenAttempt(
                window_id=r.window_id,
                status=r.status,
                winner_wallet=r.winner_wallet,
                prize_lamports=r.prize_lamports,
                draw_snapshot=r.draw_snapshot,
                tx_signature=r.tx_signature,
                created_at=r.created_at,
            )
            for r in rows
        ]

    report = ReconciliationReport(examined=len(attempts))
    if not attempts:
        return report
    logger.info("[RECONCILE] Examining {} open payouts", len(attempts))

    for attempt in attempts:
        try:
            signature = await _locate_transfer(ledger, attempt)
        except Exception as e:
            logger.error("[RECONCILE] Ledger lookup for {} failed: {!r}", attempt.window_id, e)
            report.unresolved += 1
            continue
        async with session_factory() as session:
            if signature:
                try:
                    if await crud.get_by_window(session, attempt.window_id) is None:
                        crud.add_draw_record(session, record_from_snapshot(
                            attempt.window_id,
                            attempt.draw_snapshot,
                            signature,
                            settings.EXPLORER_TX_URL.format(signature=signature),
                        ))
                    await crud.set_attempt_status(
                        session, attempt.window_id, "confirmed", at=utcnow(), tx_signature=signature
                    )
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    logger.warning("[RECONCILE] Draw {} recorded concurrently", attempt.window_id)
                    report.unresolved += 1
                    continue
                logger.info("[RECONCILE] Recorded landed payout {} for {}", signature, attempt.window_id)
                report.completed += 1
            else:
                await crud.set_attempt_status(
                    session, attempt.window_id, "failed", at=utcnow(),
                    error_message="transfer not found on ledger",
                )
                await session.commit()
                logger.warning("[RECONCILE] Payout for {} never landed; window reopened", attempt.window_id)
                report.reopened += 1

    logger.info(
        "[RECONCILE] Done: {} completed, {} reopened, {} unresolved",
        report.completed, report.reopened, report.unresolved,
    )
    return report
