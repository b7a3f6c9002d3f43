"""Bodies of the recurring jobs, wired to their collaborators."""

from collections.abc import Callable

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nuke_league.config import Settings, settings
from nuke_league.ledger.base import LedgerConfigError, LedgerGateway
from nuke_league.portfolio.client import PortfolioClient
from nuke_league.services.draw_service import DrawOutcome, DrawService, should_perform_draw
from nuke_league.services.eligibility_service import EligibilityReport, validate_token_holdings
from nuke_league.services.fee_service import claim_creator_fees
from nuke_league.services.lottery import RandomSource
from nuke_league.services.reconciliation import ReconciliationReport, reconcile_payouts
from nuke_league.services.stats_service import SweepReport, sync_season_stats


class LeagueJobs:
    """Job bodies sharing one session factory and one (lazily built) ledger gateway.

    Configuration problems end the current invocation with an error log;
    they are not raised.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger_factory: Callable[[], LedgerGateway],
        portfolio_factory: Callable[[], PortfolioClient] = PortfolioClient,
        *,
        config: Settings = settings,
        rng: RandomSource | None = None,
    ):
        self._session_factory = session_factory
        self._ledger_factory = ledger_factory
        self._portfolio_factory = portfolio_factory
        self._config = config
        self._rng = rng
        self._ledger: LedgerGateway | None = None

    def _get_ledger(self) -> LedgerGateway | None:
        if self._ledger is None:
            try:
                self._ledger = self._ledger_factory()
            except LedgerConfigError as e:
                logger.error("Ledger unavailable: {}", e)
                return None
        return self._ledger

    async def close(self) -> None:
        if self._ledger is not None:
            await self._ledger.close()
            self._ledger = None

    async def update_all_traders_stats(self) -> SweepReport:
        async with self._session_factory() as session:
            async with self._portfolio_factory() as client:
                return await sync_season_stats(session, client)

    async def claim_fees(self) -> None:
        if not self._config.SHOULD_CLAIM_FEES:
            logger.info("[FEES] Auto-claim disabled (SHOULD_CLAIM_FEES=false)")
            return
        ledger = self._get_ledger()
        if ledger is None:
            return
        await claim_creator_fees(ledger, self._config.FEE_CLAIM_PRIORITY_FEE)

    async def validate_holdings(self) -> EligibilityReport | None:
        if not self._config.TOKEN_MINT:
            logger.error("[TOKEN-CHECK] TOKEN_MINT not configured")
            return None
        ledger = self._get_ledger()
        if ledger is None:
            return None
        async with self._session_factory() as session:
            return await validate_token_holdings(
                session,
                ledger,
                mint=self._config.TOKEN_MINT,
                required=self._config.TOKEN_REQUIRED,
            )

    async def perform_draw(self) -> DrawOutcome | None:
        if not self._config.SHOULD_PERFORM_DRAWS:
            return None
        async with self._session_factory() as session:
            if not await should_perform_draw(session):
                return None
        ledger = self._get_ledger()
        if ledger is None:
            return None

        logger.info("[DRAW] Starting scheduled prize draw...")
        service = DrawService(
            self._session_factory,
            ledger,
            rng=self._rng,
            ledger_timeout=self._config.LEDGER_TIMEOUT_SECONDS,
        )
        outcome = await service.perform_draw()
        if outcome.success:
            logger.info("[DRAW] Prize draw {} finished: {}", outcome.window_id, outcome.state.value)
        else:
            logger.info("[DRAW] Prize draw {} not completed: {} ({})",
                        outcome.window_id, outcome.state.value, outcome.error)
        return outcome

    async def reconcile(self) -> ReconciliationReport | None:
        ledger = self._get_ledger()
        if ledger is None:
            return None
        return await reconcile_payouts(
            self._session_factory,
            ledger,
            grace_seconds=self._config.RECONCILE_GRACE_SECONDS,
        )


def build_default_jobs() -> LeagueJobs:
    """Jobs bound to the application database and the Solana payout wallet."""
    from nuke_league.db.engine import async_session_factory
    from nuke_league.ledger.solana_gateway import SolanaLedgerGateway

    return LeagueJobs(async_session_factory, SolanaLedgerGateway)
