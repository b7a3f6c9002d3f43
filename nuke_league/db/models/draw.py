"""Prize draw ORM models."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, BigInteger, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from nuke_league.db.base import Base


class DrawRecord(Base):
    """Completed hourly prize draw. Append-only, one row per window id."""

    __tablename__ = "draw_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    window_id: Mapped[str] = mapped_column(String(13), unique=True, nullable=False, index=True)
    season_id: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    draw_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    # Snapshot of the ranked participants, decimals serialized as strings
    participants: Mapped[list[dict]] = mapped_column(JSON, nullable=False)

    winner_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    winner_wallet: Mapped[str] = mapped_column(String(64), nullable=False)
    winner_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    winner_rank: Mapped[int] = mapped_column(Integer, nullable=False)

    prize_amount: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    total_pool_at_draw: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)

    tx_signature: Mapped[str] = mapped_column(String(128), nullable=False)
    tx_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")

    def __repr__(self) -> str:
        return f"<DrawRecord window={self.window_id} winner={self.winner_wallet} prize={self.prize_amount}>"


class PayoutAttempt(Base):
    """Durable marker for a prize transfer in flight for a window.

    status: pending / unknown / failed / confirmed
    """

    __tablename__ = "payout_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    window_id: Mapped[str] = mapped_column(String(13), unique=True, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    winner_wallet: Mapped[str] = mapped_column(String(64), nullable=False)
    prize_amount: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False)
    prize_lamports: Mapped[int] = mapped_column(BigInteger, nullable=False)
    draw_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    tx_signature: Mapped[str | None] = mapped_column(String(128), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<PayoutAttempt window={self.window_id} status={self.status}>"
