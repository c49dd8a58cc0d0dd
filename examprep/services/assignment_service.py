"""
Weekly assignments for free-tier users.

An assignment is active while it is neither completed nor expired; a user holds at
most one active assignment. Expired rows stay invisible to reads until the sweep
deletes them.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from examprep.infra.events import EventEmitter, emit_safely
from examprep.models.models import Attempt, AttemptStatus, Tier, User, WeeklyAssignment
from examprep.schemas.event_schemas import AssignmentCompletedEvent
from examprep.services.catalog_service import CatalogService
from examprep.services.errors import (
    AccessDenied,
    AssignmentAlreadyActive,
    AssignmentAlreadyCompleted,
    AssignmentNotFound,
    NotYetCompleted,
    UserNotFound,
    WriteConflict,
)
from examprep.services.retry import retry_on_conflict
from examprep.utils.common import active_assignment_key, as_naive_utc, iso_format, paginate, utcnow
from examprep.utils.logger import configure_logging

logger = configure_logging()

ASSIGNMENT_LIFETIME = timedelta(days=7)


def assignment_to_dict(a: WeeklyAssignment) -> dict:
    test = a.test
    return {
        "id": a.id,
        "user_id": a.user_id,
        "test_id": a.test_id,
        "test_title": test.title if test is not None else None,
        "subject_area": test.subject_area.value if test is not None else None,
        "assigned_at": iso_format(a.assigned_at),
        "expires_at": iso_format(a.expires_at),
        "is_completed": bool(a.is_completed),
        "completed_at": iso_format(a.completed_at),
        "completing_attempt_id": a.completing_attempt_id,
    }


class AssignmentService:
    def __init__(self, db: DBSession, events: Optional[EventEmitter] = None):
        self.db = db
        self.events = events

    def _not_expired(self, query, now: datetime):
        return query.filter(WeeklyAssignment.expires_at >= now)

    def active_for_user(self, user_id: int, now: Optional[datetime] = None) -> list[WeeklyAssignment]:
        now = now or utcnow()
        q = self.db.query(WeeklyAssignment).filter(
            WeeklyAssignment.user_id == user_id,
            WeeklyAssignment.is_completed == False,  # noqa: E712
        )
        return self._not_expired(q, now).order_by(WeeklyAssignment.assigned_at.desc()).all()

    def _release_expired_key(self, user_id: int, now: datetime) -> None:
        self.db.execute(
            update(WeeklyAssignment)
            .where(
                WeeklyAssignment.active_key == active_assignment_key(user_id),
                WeeklyAssignment.expires_at < now,
            )
            .values(active_key=None)
        )

    def _key_holder(self, user_id: int, now: datetime) -> Optional[WeeklyAssignment]:
        q = self.db.query(WeeklyAssignment).filter(WeeklyAssignment.active_key == active_assignment_key(user_id))
        return self._not_expired(q, now).first()

    @retry_on_conflict
    def create(
        self,
        user_id: int,
        test_id: str,
        expires_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> WeeklyAssignment:
        now = now or utcnow()
        user = self.db.get(User, user_id)
        if user is None:
            raise UserNotFound(f"user {user_id} not found", user_id=user_id)
        if user.tier != Tier.FREE:
            raise AccessDenied("weekly assignments are only for free-tier users", user_id=user_id)

        test = CatalogService(self.db).get_active_test(test_id)

        self._release_expired_key(user_id, now)
        active = self.active_for_user(user_id, now)
        if active:
            self.db.rollback()
            raise AssignmentAlreadyActive(
                f"user {user_id} already has an active assignment", assignment_id=active[0].id
            )

        assignment = WeeklyAssignment(
            id=str(uuid4()),
            user_id=user_id,
            test_id=test.id,
            assigned_at=now,
            expires_at=as_naive_utc(expires_at) or now + ASSIGNMENT_LIFETIME,
            is_completed=False,
            active_key=active_assignment_key(user_id),
        )
        self.db.add(assignment)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            holder = self._key_holder(user_id, now)
            if holder is None:
                # holder expired or completed in between; start over
                raise WriteConflict("assignment create raced, retry")
            logger.info("assignment create race lost user=%s holder=%s", user_id, holder.id)
            raise AssignmentAlreadyActive(
                f"user {user_id} already has an active assignment", assignment_id=holder.id
            )
        self.db.refresh(assignment)
        logger.info("assignment created id=%s user=%s test=%s", assignment.id, user_id, test.id)
        return assignment

    def list_for_user(
        self,
        user_id: int,
        include_completed: bool = False,
        page: int = 1,
        limit: int = 10,
        now: Optional[datetime] = None,
    ) -> tuple[list[WeeklyAssignment], dict]:
        now = now or utcnow()
        q = self.db.query(WeeklyAssignment).filter(WeeklyAssignment.user_id == user_id)
        if not include_completed:
            q = q.filter(WeeklyAssignment.is_completed == False)  # noqa: E712
        q = self._not_expired(q, now).order_by(WeeklyAssignment.assigned_at.desc())
        return paginate(q, page, limit)

    def mark_completed(self, assignment_id: str, user_id: int, now: Optional[datetime] = None) -> WeeklyAssignment:
        """
        Complete an assignment with the user's latest completed attempt on the assigned
        test. Attempts finished before the assignment was handed out do not count.
        """
        now = now or utcnow()
        assignment = self.db.get(WeeklyAssignment, assignment_id)
        if assignment is None or assignment.user_id != user_id:
            raise AssignmentNotFound(f"assignment {assignment_id} not found", assignment_id=assignment_id)
        if assignment.is_completed:
            raise AssignmentAlreadyCompleted(f"assignment {assignment_id} is already completed", assignment_id=assignment_id)

        attempt = (
            self.db.query(Attempt)
            .filter(
                Attempt.user_id == user_id,
                Attempt.test_id == assignment.test_id,
                Attempt.status == AttemptStatus.COMPLETED,
                Attempt.completed_at >= assignment.assigned_at,
            )
            .order_by(Attempt.completed_at.desc())
            .first()
        )
        if attempt is None:
            raise NotYetCompleted(
                "complete the assigned test before marking the assignment done",
                assignment_id=assignment_id,
                test_id=assignment.test_id,
            )

        rowcount = self.db.execute(
            update(WeeklyAssignment)
            .where(WeeklyAssignment.id == assignment_id, WeeklyAssignment.is_completed == False)  # noqa: E712
            .values(is_completed=True, completed_at=now, completing_attempt_id=attempt.id, active_key=None)
        ).rowcount
        if rowcount != 1:
            self.db.rollback()
            raise AssignmentAlreadyCompleted(f"assignment {assignment_id} is already completed", assignment_id=assignment_id)
        self.db.commit()
        self.db.refresh(assignment)
        logger.info("assignment completed id=%s user=%s attempt=%s", assignment.id, user_id, attempt.id)

        if self.events is not None:
            emit_safely(
                self.events,
                AssignmentCompletedEvent(
                    user_id=user_id,
                    assignment_id=assignment.id,
                    test_id=assignment.test_id,
                    attempt_id=attempt.id,
                    completed_at=now,
                ),
            )
        return assignment

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        deleted = (
            self.db.query(WeeklyAssignment)
            .filter(WeeklyAssignment.expires_at < now)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info("expired assignments swept count=%s", deleted)
        return int(deleted)
