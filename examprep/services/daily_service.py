"""
Daily challenge: one daily attempt per user per calendar day (UTC).

The candidate shown by peek is drawn at random and not stored; the start call may pass
it back, otherwise a fresh candidate is drawn.
"""

import random
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session as DBSession

from examprep.infra.events import EventEmitter
from examprep.models.models import Attempt, TestDefinition, Tier
from examprep.services.attempt_service import AttemptService, attempt_snapshot
from examprep.services.catalog_service import CatalogService, summarize_test
from examprep.services.engagement_service import EngagementService
from examprep.services.errors import NoTestsAvailable
from examprep.utils.common import iso_format, utcnow
from examprep.utils.logger import configure_logging

logger = configure_logging()


class DailyService:
    def __init__(
        self,
        db: DBSession,
        events: Optional[EventEmitter] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.rng = rng or random.Random()
        self.attempts = AttemptService(db, events)
        self.catalog = CatalogService(db)
        self.engagement = EngagementService(db)

    def pick_candidate(self, tier: Tier) -> TestDefinition:
        tests = self.catalog.visible_tests_query(tier).order_by(TestDefinition.id).all()
        if not tests:
            raise NoTestsAvailable("no daily tests available")
        return self.rng.choice(tests)

    def peek(self, user_id: int, tier: Tier, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        state = self.engagement.get_state(user_id)
        body = {
            "already_started": False,
            "daily_streak": int(state.daily_streak) if state else 0,
            "last_daily_test_at": iso_format(state.last_daily_test_at) if state else None,
            "attempt": None,
            "candidate": None,
        }
        today: Optional[Attempt] = self.attempts.find_daily(user_id, now)
        if today is not None:
            body["already_started"] = True
            body["attempt"] = attempt_snapshot(today)
        else:
            body["candidate"] = summarize_test(self.pick_candidate(tier))
        return body

    def start(
        self,
        user_id: int,
        tier: Tier,
        test_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Attempt, bool]:
        """Start today's daily attempt on `test_id`, or on a freshly drawn candidate."""
        if test_id is None:
            test_id = self.pick_candidate(tier).id
        logger.info("daily start user=%s test=%s", user_id, test_id)
        return self.attempts.start_attempt(user_id, tier, test_id, is_daily=True, now=now)
