"""Hourly prize draw: rank, pick a winner, pay out, record exactly once."""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from enum import Enum

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nuke_league.config import settings
from nuke_league.db.crud import draw as crud
from nuke_league.db.models.draw import DrawRecord, PayoutAttempt
from nuke_league.ledger.base import (
    LedgerConfigError,
    LedgerGateway,
    TransferFailed,
    TransferOutcomeUnknown,
    to_base_units,
)
from nuke_league.services.lottery import DRAW_SIZE, ParticipantRecord, RandomSource, select_winner
from nuke_league.services.ranking import rank_top_n
from nuke_league.services.windows import as_utc, current_season_id, draw_window_id, utcnow

PRIZE_FRACTION = Decimal("0.10")
_LAMPORT = Decimal("0.000000001")


class DrawState(str, Enum):
    DONE = "done"
    ALREADY_DONE = "already_done"
    INSUFFICIENT_PARTICIPANTS = "insufficient_participants"
    PAY_FAILED = "pay_failed"
    OUTCOME_UNKNOWN = "outcome_unknown"
    CONCURRENT_DUPLICATE = "concurrent_duplicate"
    CONFIG_ERROR = "config_error"
    FAILED = "failed"


@dataclass
class DrawOutcome:
    state: DrawState
    window_id: str
    draw: DrawRecord | None = None
    winner: ParticipantRecord | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.state in (DrawState.DONE, DrawState.ALREADY_DONE)


def compute_prize(pool: Decimal) -> Decimal:
    """10% of the pool, truncated to whole lamports."""
    return (pool * PRIZE_FRACTION).quantize(_LAMPORT, rounding=ROUND_FLOOR)


def build_snapshot(
    *,
    season_id: str,
    draw_time: datetime,
    participants: list[ParticipantRecord],
    winner: ParticipantRecord,
    prize: Decimal,
    pool: Decimal,
) -> dict:
    return {
        "season_id": season_id,
        "draw_time": draw_time.isoformat(),
        "participants": [p.to_snapshot() for p in participants],
        "winner": winner.to_snapshot(),
        "prize_amount": str(prize),
        "total_pool": str(pool),
    }


def record_from_snapshot(window_id: str, snapshot: dict, signature: str, url: str | None) -> dict:
    """Column values for a DrawRecord built from a payout attempt snapshot."""
    winner = snapshot["winner"]
    return {
        "window_id": window_id,
        "season_id": snapshot["season_id"],
        "draw_time": datetime.fromisoformat(snapshot["draw_time"]),
        "participants": snapshot["participants"],
        "winner_user_id": winner["user_id"],
        "winner_wallet": winner["wallet"],
        "winner_name": winner["name"],
        "winner_rank": winner["rank"],
        "prize_amount": Decimal(snapshot["prize_amount"]),
        "total_pool_at_draw": Decimal(snapshot["total_pool"]),
        "tx_signature": signature,
        "tx_url": url,
        "status": "completed",
    }


async def should_perform_draw(session: AsyncSession, now: datetime | None = None) -> bool:
    """False when the current hour already has a draw or a payout in flight."""
    window = draw_window_id(now)
    if await crud.get_by_window(session, window):
        return False
    attempt = await crud.get_attempt(session, window)
    return attempt is None or attempt.status == "failed"


class DrawService:
    """Runs one draw per UTC hour against a ledger gateway.

    Steps always run in this order: idempotency check, ranking, pool balance,
    lottery, payout claim, transfer, record. A draw record is only written
    after the transfer is confirmed, and the database rejects a second record
    (or a second in-flight payout) for the same window.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: LedgerGateway,
        *,
        rng: RandomSource | None = None,
        ledger_timeout: float | None = None,
    ):
        self._session_factory = session_factory
        self._ledger = ledger
        self._rng = rng
        self._ledger_timeout = ledger_timeout or settings.LEDGER_TIMEOUT_SECONDS

    async def perform_draw(self, now: datetime | None = None) -> DrawOutcome:
        now = as_utc(now) if now else utcnow()
        window = draw_window_id(now)
        try:
            return await self._run(window, now)
        except Exception as e:
            logger.exception("[DRAW] Draw {} crashed: {}", window, e)
            return DrawOutcome(DrawState.FAILED, window, error=str(e))

    async def _run(self, window: str, now: datetime) -> DrawOutcome:
        season_id = current_season_id(now)
        logger.info("[DRAW] Starting draw {} for season {}", window, season_id)

        async with self._session_factory() as session:
            existing = await crud.get_by_window(session, window)
            if existing:
                logger.info("[DRAW] Draw {} already completed", window)
                return DrawOutcome(DrawState.ALREADY_DONE, window, draw=existing)

            attempt = await crud.get_attempt(session, window)
            if attempt and attempt.status in crud.OPEN_ATTEMPT_STATUSES:
                logger.warning(
                    "[DRAW] Payout for {} is {}; waiting for reconciliation", window, attempt.status
                )
                return DrawOutcome(DrawState.OUTCOME_UNKNOWN, window, error=f"payout {attempt.status}")

            participants = await rank_top_n(session, season_id, DRAW_SIZE)

        if len(participants) < DRAW_SIZE:
            logger.info(
                "[DRAW] Not enough traders for {} (found {}, need {})",
                window, len(participants), DRAW_SIZE,
            )
            return DrawOutcome(
                DrawState.INSUFFICIENT_PARTICIPANTS, window, error="Not enough participants"
            )

        try:
            pool = await asyncio.wait_for(self._ledger.get_pool_balance(), self._ledger_timeout)
        except LedgerConfigError as e:
            logger.error("[DRAW] Ledger misconfigured: {}", e)
            return DrawOutcome(DrawState.CONFIG_ERROR, window, error=str(e))
        except Exception as e:
            logger.warning("[DRAW] Pool balance unavailable for {}: {!r}", window, e)
            return DrawOutcome(DrawState.FAILED, window, error=f"pool balance: {e!r}")

        prize = compute_prize(pool)
        logger.info("[DRAW] Total pool: {} SOL, prize: {} SOL", pool, prize)
        if to_base_units(prize) <= 0:
            return DrawOutcome(DrawState.FAILED, window, error="Prize pool is empty")

        for p in participants:
            logger.info(
                "[DRAW]   #{}: {} - {} USD PnL ({}% chance)", p.rank, p.name, p.realized_pnl, p.win_chance
            )
        winner = select_winner(participants, self._rng)
        logger.info("[DRAW] Winner: {} (rank #{})", winner.name, winner.rank)

        snapshot = build_snapshot(
            season_id=season_id,
            draw_time=now,
            participants=participants,
            winner=winner,
            prize=prize,
            pool=pool,
        )
        if not await self._claim_payout(window, winner, prize, snapshot, now):
            logger.warning("[DRAW] Another run is already paying out {}", window)
            return DrawOutcome(
                DrawState.CONCURRENT_DUPLICATE, window, winner=winner,
                error="payout already claimed by another run",
            )

        logger.info("[DRAW] Sending {} SOL to {}", prize, winner.wallet)
        try:
            receipt = await asyncio.wait_for(
                self._ledger.transfer(winner.wallet, prize), self._ledger_timeout
            )
        except TransferFailed as e:
            logger.error("[DRAW] Transfer for {} failed: {}", window, e)
            await self._mark_attempt(window, "failed", error=str(e))
            return DrawOutcome(DrawState.PAY_FAILED, window, winner=winner, error=str(e))
        except LedgerConfigError as e:
            logger.error("[DRAW] Ledger misconfigured: {}", e)
            await self._mark_attempt(window, "failed", error=str(e))
            return DrawOutcome(DrawState.CONFIG_ERROR, window, winner=winner, error=str(e))
        except TransferOutcomeUnknown as e:
            logger.error("[DRAW] Transfer for {} unconfirmed ({}): {}", window, e.signature, e)
            await self._mark_attempt(window, "unknown", signature=e.signature, error=str(e))
            return DrawOutcome(DrawState.OUTCOME_UNKNOWN, window, winner=winner, error=str(e))
        except Exception as e:
            # Includes the outer timeout: the transfer may have landed.
            logger.error("[DRAW] Transfer for {} interrupted: {!r}", window, e)
            await self._mark_attempt(window, "unknown", error=repr(e))
            return DrawOutcome(DrawState.OUTCOME_UNKNOWN, window, winner=winner, error=repr(e))

        logger.info("[DRAW] Transaction confirmed: {}", receipt.signature)

        try:
            record = await self._persist(window, snapshot, receipt.signature, receipt.url)
        except IntegrityError:
            logger.error(
                "[DRAW] Draw {} was recorded by another run after paying {}", window, receipt.signature
            )
            return DrawOutcome(
                DrawState.CONCURRENT_DUPLICATE, window, winner=winner,
                error="draw already recorded for window",
            )
        except Exception as e:
            logger.error("[DRAW] Paid {} but could not record draw {}: {!r}", receipt.signature, window, e)
            await self._mark_attempt(window, "unknown", signature=receipt.signature, error=repr(e))
            return DrawOutcome(DrawState.OUTCOME_UNKNOWN, window, winner=winner, error=repr(e))

        logger.info("[DRAW] Draw {} completed successfully", window)
        return DrawOutcome(DrawState.DONE, window, draw=record, winner=winner)

    async def _claim_payout(
        self, window: str, winner: ParticipantRecord, prize: Decimal, snapshot: dict, now: datetime
    ) -> bool:
        values = {
            "winner_wallet": winner.wallet,
            "prize_amount": prize,
            "prize_lamports": to_base_units(prize),
            "draw_snapshot": snapshot,
        }
        async with self._session_factory() as session:
            attempt = await crud.get_attempt(session, window)
            if attempt is not None:
                reopened = await crud.reopen_failed_attempt(session, window, values, at=utcnow())
                await session.commit()
                return reopened

            session.add(PayoutAttempt(
                window_id=window,
                status="pending",
                created_at=now,
                updated_at=utcnow(),
                **values,
            ))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
        return True

    async def _mark_attempt(
        self, window: str, status: str, *, signature: str | None = None, error: str | None = None
    ) -> None:
        try:
            async with self._session_factory() as session:
                await crud.set_attempt_status(
                    session, window, status, at=utcnow(), tx_signature=signature, error_message=error
                )
                await session.commit()
        except Exception as e:
            # The attempt stays "pending", which reconciliation also picks up.
            logger.error("[DRAW] Could not mark payout {} as {}: {!r}", window, status, e)

    async def _persist(self, window: str, snapshot: dict, signature: str, url: str | None) -> DrawRecord:
        async with self._session_factory() as session:
            record = crud.add_draw_record(session, record_from_snapshot(window, snapshot, signature, url))
            await crud.set_attempt_status(
                session, window, "confirmed", at=utcnow(), tx_signature=signature
            )
            await session.commit()
            return record
