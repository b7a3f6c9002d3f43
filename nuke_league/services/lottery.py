"""Weighted lottery over the top-ranked participants."""

import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from loguru import logger

# Fixed chance table for a 3-way draw. Any other field size needs its own table.
WIN_CHANCE_BY_RANK: dict[int, int] = {1: 55, 2: 30, 3: 15}

DRAW_SIZE = len(WIN_CHANCE_BY_RANK)


class RandomSource(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True)
class ParticipantRecord:
    rank: int
    user_id: int
    wallet: str
    name: str
    realized_pnl: Decimal
    win_chance: int

    def to_snapshot(self) -> dict:
        """JSON-safe form stored on the draw record."""
        return {
            "rank": self.rank,
            "user_id": self.user_id,
            "wallet": self.wallet,
            "name": self.name,
            "realized_pnl": str(self.realized_pnl),
            "win_chance": self.win_chance,
        }


def win_chance_for_rank(rank: int) -> int:
    try:
        return WIN_CHANCE_BY_RANK[rank]
    except KeyError:
        raise ValueError(
            f"No win chance defined for rank {rank}; table covers ranks 1-{DRAW_SIZE}"
        ) from None


_default_rng = random.Random()


def select_winner(
    participants: list[ParticipantRecord],
    rng: RandomSource | None = None,
) -> ParticipantRecord:
    """Pick one winner with a single uniform sample in [0, 100).

    Participants are walked in rank order; the first whose cumulative chance
    reaches the sample wins. If float rounding leaves the sample uncovered,
    the lowest-ranked participant wins.
    """
    if not participants:
        raise ValueError("Cannot draw a winner from an empty field")

    ordered = sorted(participants, key=lambda p: p.rank)
    roll = (rng or _default_rng).random() * 100

    cumulative = 0.0
    for participant in ordered:
        cumulative += participant.win_chance
        if roll <= cumulative:
            logger.debug("Lottery roll {:.4f} -> rank #{}", roll, participant.rank)
            return participant

    fallback = ordered[-1]
    logger.warning(
        "Lottery roll {:.4f} exceeded cumulative chance {}; falling back to rank #{}",
        roll, cumulative, fallback.rank,
    )
    return fallback
