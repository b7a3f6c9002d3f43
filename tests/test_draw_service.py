"""Tests for the hourly prize draw."""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from nuke_league.db.crud import draw as crud
from nuke_league.db.models import DrawRecord, PayoutAttempt
from nuke_league.ledger.base import LedgerConfigError, TransferFailed, TransferOutcomeUnknown
from nuke_league.services.draw_service import DrawService, DrawState, should_perform_draw
from tests.helpers import SEASON, FixedRandom, add_trader

NOW = datetime(2025, 10, 9, 12, 30)
WINDOW = "2025-10-09-12"


def _service(session_factory, ledger, **kwargs):
    kwargs.setdefault("rng", FixedRandom(0.60))
    return DrawService(session_factory, ledger, **kwargs)


async def _record_count(session_factory) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count(DrawRecord.id)))).scalar()


async def _attempt(session_factory, window=WINDOW):
    async with session_factory() as session:
        return await crud.get_attempt(session, window)


@pytest.mark.asyncio
async def test_completed_draw_pays_and_records(session_factory, ledger, three_traders):
    outcome = await _service(session_factory, ledger).perform_draw(NOW)

    assert outcome.state == DrawState.DONE
    assert outcome.success
    assert outcome.winner.name == "B"
    assert ledger.transfers == [("BWallet1111", Decimal("10"))]

    async with session_factory() as session:
        record = await crud.get_by_window(session, WINDOW)
    assert record.season_id == SEASON
    assert record.draw_time == NOW
    assert record.winner_name == "B"
    assert record.winner_rank == 2
    assert record.winner_wallet == "BWallet1111"
    assert record.winner_user_id == three_traders[1].user_id
    assert record.prize_amount == Decimal("10")
    assert record.total_pool_at_draw == Decimal("100")
    assert record.tx_signature == "sig-1"
    assert record.tx_url == "https://solscan.io/tx/sig-1"
    assert record.status == "completed"
    assert [p["name"] for p in record.participants] == ["A", "B", "C"]
    assert [p["win_chance"] for p in record.participants] == [55, 30, 15]

    attempt = await _attempt(session_factory)
    assert attempt.status == "confirmed"
    assert attempt.prize_lamports == 10_000_000_000


@pytest.mark.asyncio
async def test_second_run_in_same_hour_is_a_no_op(session_factory, ledger, three_traders):
    service = _service(session_factory, ledger)

    first = await service.perform_draw(NOW)
    second = await service.perform_draw(NOW + timedelta(minutes=20))

    assert first.state == DrawState.DONE
    assert second.state == DrawState.ALREADY_DONE
    assert second.draw.window_id == WINDOW
    assert len(ledger.transfers) == 1
    assert await _record_count(session_factory) == 1


@pytest.mark.asyncio
async def test_each_hour_gets_its_own_draw(session_factory, ledger, three_traders):
    service = _service(session_factory, ledger)

    await service.perform_draw(NOW)
    outcome = await service.perform_draw(NOW + timedelta(hours=1))

    assert outcome.state == DrawState.DONE
    assert outcome.window_id == "2025-10-09-13"
    assert len(ledger.transfers) == 2
    assert await _record_count(session_factory) == 2


@pytest.mark.asyncio
async def test_insufficient_participants(session_factory, ledger):
    async with session_factory() as session:
        await add_trader(session, "A", 500)
        await add_trader(session, "B", 200)
        await add_trader(session, "C", 50, sold_token=True)
        await session.commit()

    outcome = await _service(session_factory, ledger).perform_draw(NOW)

    assert outcome.state == DrawState.INSUFFICIENT_PARTICIPANTS
    assert not outcome.success
    assert ledger.transfers == []
    assert await _record_count(session_factory) == 0
    assert await _attempt(session_factory) is None


@pytest.mark.asyncio
async def test_failed_transfer_leaves_window_open(session_factory, ledger, three_traders):
    service = _service(session_factory, ledger)
    ledger.transfer_error = TransferFailed("insufficient funds for rent")

    outcome = await service.perform_draw(NOW)

    assert outcome.state == DrawState.PAY_FAILED
    assert "insufficient funds" in outcome.error
    assert await _record_count(session_factory) == 0
    assert (await _attempt(session_factory)).status == "failed"

    async with session_factory() as session:
        assert await should_perform_draw(session, NOW)

    ledger.transfer_error = None
    retry = await service.perform_draw(NOW + timedelta(minutes=5))

    assert retry.state == DrawState.DONE
    assert len(ledger.transfers) == 2
    assert await _record_count(session_factory) == 1
    assert (await _attempt(session_factory)).status == "confirmed"


@pytest.mark.asyncio
async def test_unknown_outcome_blocks_retry(session_factory, ledger, three_traders):
    service = _service(session_factory, ledger)
    ledger.transfer_error = TransferOutcomeUnknown("confirmation not observed", signature="sig-pending")

    outcome = await service.perform_draw(NOW)

    assert outcome.state == DrawState.OUTCOME_UNKNOWN
    attempt = await _attempt(session_factory)
    assert attempt.status == "unknown"
    assert attempt.tx_signature == "sig-pending"
    assert await _record_count(session_factory) == 0

    ledger.transfer_error = None
    again = await service.perform_draw(NOW + timedelta(minutes=10))

    assert again.state == DrawState.OUTCOME_UNKNOWN
    assert len(ledger.transfers) == 1
    async with session_factory() as session:
        assert not await should_perform_draw(session, NOW)


@pytest.mark.asyncio
async def test_transfer_timeout_is_treated_as_unknown(session_factory, ledger, three_traders):
    ledger.transfer_delay = 1.0
    service = _service(session_factory, ledger, ledger_timeout=0.05)

    outcome = await service.perform_draw(NOW)

    assert outcome.state == DrawState.OUTCOME_UNKNOWN
    assert (await _attempt(session_factory)).status == "unknown"
    assert await _record_count(session_factory) == 0


@pytest.mark.asyncio
async def test_balance_failure_aborts_before_payout(session_factory, ledger, three_traders):
    ledger.balance_error = ConnectionError("rpc down")

    outcome = await _service(session_factory, ledger).perform_draw(NOW)

    assert outcome.state == DrawState.FAILED
    assert ledger.transfers == []
    assert await _attempt(session_factory) is None


@pytest.mark.asyncio
async def test_missing_credentials_is_a_config_error(session_factory, ledger, three_traders):
    ledger.balance_error = LedgerConfigError("DEV_PK not configured")

    outcome = await _service(session_factory, ledger).perform_draw(NOW)

    assert outcome.state == DrawState.CONFIG_ERROR
    assert ledger.transfers == []


@pytest.mark.asyncio
async def test_dust_pool_is_not_paid(session_factory, ledger, three_traders):
    ledger.balance = Decimal("0.000000005")

    outcome = await _service(session_factory, ledger).perform_draw(NOW)

    assert outcome.state == DrawState.FAILED
    assert outcome.error == "Prize pool is empty"
    assert ledger.transfers == []


def _claim_by_rival(session_factory):
    """Hook that claims the window's payout as another run would."""

    async def claim():
        async with session_factory() as session:
            session.add(PayoutAttempt(
                window_id=WINDOW,
                status="pending",
                winner_wallet="AWallet1111",
                prize_amount=Decimal("10"),
                prize_lamports=10_000_000_000,
                draw_snapshot={},
                created_at=NOW,
                updated_at=NOW,
            ))
            await session.commit()

    return claim


@pytest.mark.asyncio
async def test_payout_claimed_by_another_run(session_factory, ledger, three_traders):
    ledger.on_balance = _claim_by_rival(session_factory)

    outcome = await _service(session_factory, ledger).perform_draw(NOW)

    assert outcome.state == DrawState.CONCURRENT_DUPLICATE
    assert ledger.transfers == []
    assert await _record_count(session_factory) == 0


@pytest.mark.asyncio
async def test_unique_claim_conflict_is_a_duplicate(session_factory, ledger, three_traders, monkeypatch):
    # Both runs saw no attempt; the database rejects the second insert.
    monkeypatch.setattr(crud, "get_attempt", AsyncMock(return_value=None))
    ledger.on_balance = _claim_by_rival(session_factory)

    outcome = await _service(session_factory, ledger).perform_draw(NOW)

    assert outcome.state == DrawState.CONCURRENT_DUPLICATE
    assert ledger.transfers == []


@pytest.mark.asyncio
async def test_storage_rejects_second_record_for_window(session_factory):
    row = {
        "window_id": WINDOW,
        "season_id": SEASON,
        "draw_time": NOW,
        "participants": [],
        "winner_user_id": 1,
        "winner_wallet": "w",
        "winner_name": "n",
        "winner_rank": 1,
        "prize_amount": Decimal("1"),
        "total_pool_at_draw": Decimal("10"),
        "tx_signature": "sig",
    }
    async with session_factory() as session:
        crud.add_draw_record(session, row)
        await session.commit()

    async with session_factory() as session:
        crud.add_draw_record(session, {**row, "tx_signature": "sig-2"})
        with pytest.raises(IntegrityError):
            await session.commit()


@pytest.mark.asyncio
async def test_should_perform_draw(session_factory, ledger, three_traders):
    async with session_factory() as session:
        assert await should_perform_draw(session, NOW)

    await _service(session_factory, ledger).perform_draw(NOW)

    async with session_factory() as session:
        assert not await should_perform_draw(session, NOW)
        assert await should_perform_draw(session, NOW + timedelta(hours=1))
