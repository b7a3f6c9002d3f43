"""Creator fee claiming into the payout wallet."""

from decimal import Decimal

from loguru import logger

from nuke_league.ledger.base import FeeClaimResult, LedgerGateway


async def claim_creator_fees(ledger: LedgerGateway, priority_fee: Decimal) -> FeeClaimResult:
    logger.info("[FEES] Claiming creator fees...")
    result = await ledger.claim_creator_fees(priority_fee)
    if result.success:
        logger.info("[FEES] Creator fees claimed: {}", result.signature)
    else:
        # Usually just means nothing has accrued yet.
        logger.info("[FEES] Could not claim fees: {}", result.error or "No fees available")
    return result
