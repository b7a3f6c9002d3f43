"""HTTP client for the wallet portfolio API used by the stats sync."""

from decimal import Decimal

import httpx
from loguru import logger

from nuke_league.config import settings


class PortfolioError(Exception):
    """The portfolio API could not produce data for a wallet."""


class PortfolioClient:
    """Thin async wrapper around the portfolio endpoint.

    One instance holds one connection pool; use it as an async context
    manager or call ``close()``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        key = api_key if api_key is not None else settings.PORTFOLIO_API_KEY
        if key:
            headers["x-api-key"] = key
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.PORTFOLIO_API_URL,
            headers=headers,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "PortfolioClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    async def get_wallet_portfolio(self, wallet: str) -> dict:
        logger.debug("Fetching portfolio for {}", wallet)
        try:
            resp = await self._http.get(f"/wallets/{wallet}/portfolio")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise PortfolioError(f"Portfolio request for {wallet} failed: {e}") from e
        data = resp.json()
        if not data:
            raise PortfolioError(f"Empty portfolio for {wallet}")
        return data


def _dec(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def transform_to_trader_stats(portfolio: dict) -> dict:
    """Map a portfolio payload onto DailyTrader stat columns."""
    realized = portfolio.get("realizedPnl") or {}
    trades = portfolio.get("trades") or {}
    return {
        "realized_usd_pnl": _dec(realized.get("usd")),
        "realized_sol_pnl": _dec(realized.get("sol")),
        "total_pnl": _dec(portfolio.get("totalPnl")),
        "total_trades": int(trades.get("total") or 0),
        "buy_count": int(trades.get("buys") or 0),
        "sell_count": int(trades.get("sells") or 0),
        "available_balance_sol": _dec(portfolio.get("availableBalanceSol")),
    }
