"""
Catalog of published test definitions.

Definitions arrive from the external authoring collaborator and are read-only
afterwards; this service has no update or delete path.
"""

from typing import Optional
from uuid import uuid4

from sqlalchemy import or_
from sqlalchemy.orm import Session as DBSession

from examprep.models.models import QuestionRef, TestDefinition, Tier
from examprep.schemas.test_schemas import PublishTestRequest
from examprep.services.errors import InvalidTestDefinition, MalformedQuestionSet, PrepError, TestNotFound
from examprep.services.scoring import QuestionKey, validate_question_set
from examprep.utils.common import paginate
from examprep.utils.logger import configure_logging

logger = configure_logging()


def question_keys(test: TestDefinition) -> list[QuestionKey]:
    """Answer key of a test, in question order."""
    return [
        QuestionKey(question_id=q.question_id, correct_answer=q.correct_answer, points=int(q.points))
        for q in sorted(test.questions, key=lambda q: q.position)
    ]


class TestAlreadyPublished(PrepError):
    __test__ = False
    status_code = 409
    code = "test_already_published"


class CatalogService:
    __test__ = False

    def __init__(self, db: DBSession):
        self.db = db

    def publish(self, req: PublishTestRequest) -> TestDefinition:
        """Validate and persist a new definition. Publishing an existing id is rejected."""
        test_id = req.id or str(uuid4())
        if self.db.get(TestDefinition, test_id) is not None:
            raise TestAlreadyPublished(f"test {test_id} is already published", test_id=test_id)

        keys = [QuestionKey(q.question_id, q.correct_answer, q.points) for q in req.questions]
        total = req.total_questions if req.total_questions is not None else len(keys)
        try:
            validate_question_set(keys, total)
        except MalformedQuestionSet as e:
            raise InvalidTestDefinition(e.message, test_id=test_id, **e.details) from e

        test = TestDefinition(
            id=test_id,
            title=req.title,
            description=req.description,
            subject_area=req.subject_area,
            difficulty=req.difficulty,
            duration_minutes=req.duration_minutes,
            total_questions=total,
            passing_score=req.passing_score,
            target_tier=req.target_tier,
            is_active=True,
        )
        for position, q in enumerate(req.questions, start=1):
            test.questions.append(
                QuestionRef(
                    question_id=q.question_id,
                    position=position,
                    prompt=q.prompt,
                    options=q.options,
                    correct_answer=q.correct_answer,
                    points=q.points,
                )
            )
        self.db.add(test)
        self.db.commit()
        self.db.refresh(test)
        logger.info("test published id=%s subject=%s questions=%s", test.id, test.subject_area.value, total)
        return test

    def get_active_test(self, test_id: str) -> TestDefinition:
        test = self.db.get(TestDefinition, test_id)
        if test is None or not test.is_active:
            raise TestNotFound(f"test {test_id} not found or not available", test_id=test_id)
        return test

    def visible_tests_query(self, tier: Optional[Tier]):
        q = self.db.query(TestDefinition).filter(TestDefinition.is_active == True)  # noqa: E712
        return q.filter(or_(TestDefinition.target_tier.is_(None), TestDefinition.target_tier == tier))

    def list_visible(self, tier: Optional[Tier], page: int = 1, limit: int = 10) -> tuple[list[TestDefinition], dict]:
        query = self.visible_tests_query(tier).order_by(TestDefinition.created_at.desc(), TestDefinition.id)
        return paginate(query, page, limit)

    def visible_test_ids(self, tier: Optional[Tier]) -> list[str]:
        return [t.id for t in self.visible_tests_query(tier).order_by(TestDefinition.id).all()]


def summarize_test(test: TestDefinition) -> dict:
    return {
        "id": test.id,
        "title": test.title,
        "description": test.description,
        "subject_area": test.subject_area,
        "difficulty": test.difficulty,
        "duration_minutes": int(test.duration_minutes),
        "total_questions": int(test.total_questions),
        "passing_score": int(test.passing_score),
        "target_tier": test.target_tier,
    }

