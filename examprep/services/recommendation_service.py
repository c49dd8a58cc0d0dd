"""
Premium follow-up recommendations produced by the external generator.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.orm import Session as DBSession

from examprep.models.models import Recommendation, Tier, User
from examprep.schemas.engagement_schemas import CreateRecommendationRequest
from examprep.services.errors import (
    AccessDenied,
    RecommendationAlreadyCompleted,
    RecommendationNotFound,
    UserNotFound,
)
from examprep.utils.common import as_naive_utc, iso_format, utcnow
from examprep.utils.logger import configure_logging

logger = configure_logging()

RECOMMENDATION_LIFETIME = timedelta(days=30)
ACTIVE_LIMIT = 5


def recommendation_to_dict(r: Recommendation) -> dict:
    return {
        "id": r.id,
        "user_id": r.user_id,
        "recommendation_type": r.recommendation_type.value,
        "content": r.content or {},
        "priority": int(r.priority),
        "expires_at": iso_format(r.expires_at),
        "is_completed": bool(r.is_completed),
        "completed_at": iso_format(r.completed_at),
        "created_at": iso_format(r.created_at),
    }


class RecommendationService:
    def __init__(self, db: DBSession):
        self.db = db

    def create(self, req: CreateRecommendationRequest, now: Optional[datetime] = None) -> Recommendation:
        now = now or utcnow()
        user = self.db.get(User, req.user_id)
        if user is None:
            raise UserNotFound(f"user {req.user_id} not found", user_id=req.user_id)
        if user.tier != Tier.PREMIUM:
            raise AccessDenied("recommendations are a premium feature", user_id=req.user_id)

        rec = Recommendation(
            id=str(uuid4()),
            user_id=user.id,
            recommendation_type=req.recommendation_type,
            content=req.content,
            priority=req.priority,
            expires_at=as_naive_utc(req.expires_at) or now + RECOMMENDATION_LIFETIME,
            is_completed=False,
            workflow_id=req.workflow_id,
            created_at=now,
        )
        self.db.add(rec)
        self.db.commit()
        self.db.refresh(rec)
        logger.info("recommendation created id=%s user=%s type=%s", rec.id, user.id, rec.recommendation_type.value)
        return rec

    def list_active(self, user_id: int, limit: int = ACTIVE_LIMIT, now: Optional[datetime] = None) -> list[Recommendation]:
        now = now or utcnow()
        return (
            self.db.query(Recommendation)
            .filter(
                Recommendation.user_id == user_id,
                Recommendation.is_completed == False,  # noqa: E712
                Recommendation.expires_at > now,
            )
            .order_by(Recommendation.priority.desc(), Recommendation.created_at.desc())
            .limit(limit)
            .all()
        )

    def mark_completed(self, recommendation_id: str, user_id: int, now: Optional[datetime] = None) -> Recommendation:
        now = now or utcnow()
        rec = self.db.get(Recommendation, recommendation_id)
        if rec is None or rec.user_id != user_id:
            raise RecommendationNotFound(
                f"recommendation {recommendation_id} not found", recommendation_id=recommendation_id
            )

        rowcount = self.db.execute(
            update(Recommendation)
            .where(Recommendation.id == recommendation_id, Recommendation.is_completed == False)  # noqa: E712
            .values(is_completed=True, completed_at=now)
        ).rowcount
        if rowcount != 1:
            self.db.rollback()
            raise RecommendationAlreadyCompleted(
                f"recommendation {recommendation_id} is already completed", recommendation_id=recommendation_id
            )
        self.db.commit()
        self.db.refresh(rec)
        logger.info("recommendation completed id=%s user=%s", rec.id, user_id)
        return rec
