"""
Daily streak bookkeeping.
"""

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session as DBSession

from examprep.models.models import EngagementState
from examprep.services.progress_service import flush_or_conflict
from examprep.utils.common import utcnow
from examprep.utils.logger import configure_logging

logger = configure_logging()


def next_streak(current: int, last_day: Optional[date], today: date) -> tuple[int, bool]:
    """
    Streak after a daily completion on `today`.

    Returns (streak, counted). Yesterday continues the run, today is a no-op, any
    other gap (or no history) restarts at 1.
    """
    if last_day == today:
        return current, False
    if last_day is not None and last_day == today - timedelta(days=1):
        return current + 1, True
    return 1, True


class EngagementService:
    def __init__(self, db: DBSession):
        self.db = db

    def get_state(self, user_id: int) -> Optional[EngagementState]:
        return self.db.get(EngagementState, user_id)

    def get_streak(self, user_id: int) -> int:
        state = self.get_state(user_id)
        return int(state.daily_streak) if state else 0

    def record_daily_completion(self, user_id: int, completed_at: Optional[datetime] = None) -> EngagementState:
        """Advance the streak for a completed daily attempt. Flushes but does not commit."""
        completed_at = completed_at or utcnow()
        state = self.get_state(user_id)
        if state is None:
            state = EngagementState(user_id=user_id, daily_streak=0, last_daily_test_at=None)
            self.db.add(state)

        last_day = state.last_daily_test_at.date() if state.last_daily_test_at else None
        streak, counted = next_streak(int(state.daily_streak or 0), last_day, completed_at.date())
        if counted:
            state.daily_streak = streak
            state.last_daily_test_at = completed_at
            flush_or_conflict(self.db)
            logger.info("daily streak user=%s streak=%s", user_id, streak)
        return state
