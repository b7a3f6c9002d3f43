"""Test doubles and seeding helpers."""

import asyncio
from collections.abc import Awaitable, Callable
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from nuke_league.db.models import DailyTrader, User
from nuke_league.ledger.base import (
    FeeClaimResult,
    LedgerGateway,
    TransferReceipt,
    TransferStatus,
)

SEASON = "2025-10-09"


class FixedRandom:
    """Random source that always returns the same sample."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


class FakeLedger(LedgerGateway):
    """In-memory ledger; failures are injected by setting attributes."""

    def __init__(self, balance: Decimal = Decimal("100.0")):
        self.balance = balance
        self.balance_error: Exception | None = None
        self.transfer_error: Exception | None = None
        self.transfer_delay: float = 0.0
        self.transfers: list[tuple[str, Decimal]] = []
        self.statuses: dict[str, TransferStatus] = {}
        self.found_signature: str | None = None
        self.find_calls: list[tuple[str, int]] = []
        self.token_balances: dict[str, int | Exception] = {}
        self.fee_result = FeeClaimResult(success=True, signature="fee-sig")
        self.fee_calls: list[Decimal] = []
        self.on_balance: Callable[[], Awaitable[None]] | None = None
        self.closed = False

    async def get_pool_balance(self) -> Decimal:
        if self.on_balance is not None:
            await self.on_balance()
        if self.balance_error:
            raise self.balance_error
        return self.balance

    async def transfer(self, destination: str, amount: Decimal) -> TransferReceipt:
        self.transfers.append((destination, amount))
        if self.transfer_delay:
            await asyncio.sleep(self.transfer_delay)
        if self.transfer_error:
            raise self.transfer_error
        signature = f"sig-{len(self.transfers)}"
        return TransferReceipt(signature=signature, url=f"https://solscan.io/tx/{signature}")

    async def get_transfer_status(self, signature: str) -> TransferStatus:
        return self.statuses.get(signature, TransferStatus.NOT_FOUND)

    async def find_transfer(self, destination, lamports, since):
        self.find_calls.append((destination, lamports))
        return self.found_signature

    async def get_token_balance(self, owner: str, mint: str) -> int:
        value = self.token_balances.get(owner, 0)
        if isinstance(value, Exception):
            raise value
        return value

    async def claim_creator_fees(self, priority_fee: Decimal) -> FeeClaimResult:
        self.fee_calls.append(priority_fee)
        return self.fee_result

    async def close(self) -> None:
        self.closed = True


async def add_trader(
    session: AsyncSession,
    name: str,
    pnl: str | int,
    *,
    season_id: str = SEASON,
    sold_token: bool | None = False,
    is_active: bool = True,
    wallet: str | None = None,
) -> DailyTrader:
    """Insert a user plus their trader row; ``wallet=""`` leaves no payout address."""
    wallet = wallet if wallet is not None else f"{name}Wallet1111"
    user = User(wallet=(wallet or f"nowallet-{name}").lower(), wallet_original=wallet, name=name)
    session.add(user)
    await session.flush()
    trader = DailyTrader(
        user_id=user.id,
        season_id=season_id,
        is_active=is_active,
        realized_usd_pnl=Decimal(str(pnl)),
        sold_token=sold_token,
    )
    session.add(trader)
    await session.flush()
    return trader
