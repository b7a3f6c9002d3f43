"""Ledger gateway contract used by the draw, fee and eligibility jobs."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from enum import Enum

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = 9


class LedgerError(Exception):
    """Base class for ledger failures."""


class LedgerConfigError(LedgerError):
    """Required credentials or addresses are missing or malformed."""


class TransferFailed(LedgerError):
    """The transfer definitely did not happen."""


class TransferOutcomeUnknown(LedgerError):
    """The transfer was submitted but its confirmation could not be observed."""

    def __init__(self, message: str, signature: str | None = None):
        super().__init__(message)
        self.signature = signature


class TransferStatus(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class TransferReceipt:
    signature: str
    url: str | None = None


@dataclass(frozen=True)
class FeeClaimResult:
    success: bool
    signature: str | None = None
    error: str | None = None


def to_base_units(amount: Decimal, decimals: int = SOL_DECIMALS) -> int:
    """Convert a decimal amount to the smallest unit, always rounding down."""
    if amount < 0:
        raise ValueError("amount must not be negative")
    scaled = (Decimal(amount) * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_FLOOR)
    return int(scaled)


def from_base_units(units: int, decimals: int = SOL_DECIMALS) -> Decimal:
    return Decimal(units) / (Decimal(10) ** decimals)


class LedgerGateway(ABC):
    """Operator-controlled payout account on a chain."""

    @abstractmethod
    async def get_pool_balance(self) -> Decimal:
        """Balance of the payout account in whole SOL."""
        ...

    @abstractmethod
    async def transfer(self, destination: str, amount: Decimal) -> TransferReceipt:
        """Send ``amount`` SOL to ``destination`` and wait for confirmation.

        Raises TransferFailed when nothing was sent, TransferOutcomeUnknown
        when the transaction may or may not have landed.
        """
        ...

    @abstractmethod
    async def get_transfer_status(self, signature: str) -> TransferStatus:
        ...

    @abstractmethod
    async def find_transfer(self, destination: str, lamports: int, since: datetime) -> str | None:
        """Signature of a payout-account transfer matching destination and amount, if any."""
        ...

    @abstractmethod
    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Raw token units of ``mint`` held by ``owner``."""
        ...

    @abstractmethod
    async def claim_creator_fees(self, priority_fee: Decimal) -> FeeClaimResult:
        ...

    async def close(self) -> None:
        return None
