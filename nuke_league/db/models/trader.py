"""Per-season trader ORM model."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from nuke_league.db.base import Base


class DailyTrader(Base):
    """One user's performance record for one season (UTC day)."""

    __tablename__ = "daily_traders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    season_id: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Stats refreshed by the stats sync job
    realized_usd_pnl: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False, default=Decimal("0"))
    realized_sol_pnl: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False, default=Decimal("0"))
    total_pnl: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False, default=Decimal("0"))
    total_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    buy_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sell_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_balance_sol: Mapped[Decimal] = mapped_column(Numeric(20, 9), nullable=False, default=Decimal("0"))

    # Eligibility flag: NULL and False both mean eligible
    sold_token: Mapped[bool | None] = mapped_column(Boolean, nullable=True, default=False)
    last_token_check: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    last_updated: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "season_id", name="uq_daily_trader_user_season"),
    )

    def __repr__(self) -> str:
        return f"<DailyTrader user={self.user_id} season={self.season_id} pnl={self.realized_usd_pnl}>"
