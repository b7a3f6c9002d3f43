"""ORM models package."""

from nuke_league.db.models.user import User
from nuke_league.db.models.trader import DailyTrader
from nuke_league.db.models.draw import DrawRecord, PayoutAttempt

__all__ = [
    "User",
    "DailyTrader",
    "DrawRecord",
    "PayoutAttempt",
]
