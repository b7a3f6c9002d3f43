"""Pydantic schemas for draw records and scheduler status."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class ParticipantSchema(BaseModel):
    rank: int
    user_id: int
    wallet: str
    name: str
    realized_pnl: Decimal
    win_chance: int


class DrawRecordSchema(BaseModel):
    model_config = {"from_attributes": True}

    window_id: str
    season_id: str
    draw_time: datetime
    participants: list[ParticipantSchema]
    winner_user_id: int
    winner_wallet: str
    winner_name: str
    winner_rank: int
    prize_amount: Decimal
    total_pool_at_draw: Decimal
    tx_signature: str
    tx_url: str | None
    status: str


class PaginatedDraws(BaseModel):
    items: list[DrawRecordSchema]
    total: int
    page: int
    page_size: int
    total_pages: int


class JobStatusSchema(BaseModel):
    id: str
    interval_seconds: int
    next_run: str | None
    running: bool
    runs: int
    skipped: int
    failures: int
    last_started_at: datetime | None
    last_finished_at: datetime | None
    last_error: str | None
