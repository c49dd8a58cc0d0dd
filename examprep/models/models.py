from examprep.config import Base
from sqlalchemy import (
    Column,
    Integer,
    String,
    JSON,
    DateTime,
    ForeignKey,
    Text,
    Boolean,
    Float,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum


class Tier(str, Enum):
    FREE = "FREE"
    PREMIUM = "PREMIUM"


class SubjectArea(str, Enum):
    MATHEMATICS = "MATHEMATICS"
    LOGIC = "LOGIC"
    LANGUAGE = "LANGUAGE"
    SCIENCE = "SCIENCE"
    GENERAL = "GENERAL"


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class RecommendationType(str, Enum):
    STUDY_AREA = "study_area"
    PRACTICE_QUESTIONS = "practice_questions"
    REVIEW_TOPICS = "review_topics"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    name = Column(String, nullable=True)
    tier = Column(SQLEnum(Tier), default=Tier.FREE, nullable=False)
    preferences = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class TestDefinition(Base):
    """Published mock test. Rows are never updated after publish."""
    __tablename__ = "test_definitions"
    __test__ = False  # keep pytest from collecting the model

    id = Column(String, primary_key=True, index=True)  # uuid
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    subject_area = Column(SQLEnum(SubjectArea), nullable=False, index=True)
    difficulty = Column(SQLEnum(Difficulty), default=Difficulty.MEDIUM, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    passing_score = Column(Integer, default=70, nullable=False)
    target_tier = Column(SQLEnum(Tier), nullable=True)  # NULL = open to all tiers
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    questions = relationship(
        "QuestionRef",
        backref="test",
        cascade="all, delete-orphan",
        order_by="QuestionRef.position",
    )


class QuestionRef(Base):
    __tablename__ = "question_refs"
    __table_args__ = (UniqueConstraint("test_id", "question_id", name="uq_question_ref_test_question"),)

    id = Column(Integer, primary_key=True)
    test_id = Column(String, ForeignKey("test_definitions.id"), index=True, nullable=False)
    question_id = Column(String, nullable=False)
    position = Column(Integer, nullable=False)
    prompt = Column(Text, nullable=False, default="")
    options = Column(JSON, nullable=True)  # list[str] for multiple choice
    correct_answer = Column(String, nullable=False)
    points = Column(Integer, default=1, nullable=False)


class Attempt(Base):
    __tablename__ = "attempts"
    id = Column(String, primary_key=True, index=True)  # uuid
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    test_id = Column(String, ForeignKey("test_definitions.id"), index=True, nullable=False)
    status = Column(SQLEnum(AttemptStatus), default=AttemptStatus.IN_PROGRESS, nullable=False, index=True)
    is_daily = Column(Boolean, default=False, nullable=False)

    # "<user_id>:<test_id>" while in progress, NULL once completed. The unique
    # constraint allows a single in-progress attempt per (user, test).
    in_progress_key = Column(String, unique=True, nullable=True)
    # "<user_id>:<YYYY-MM-DD>" for daily attempts only. Re-keyed to the current day when
    # a daily attempt still open from an earlier day is resumed; never cleared.
    daily_key = Column(String, unique=True, nullable=True)

    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    total_questions = Column(Integer, nullable=False)
    recorded_answers = Column(JSON, nullable=False, default=dict)
    # bumped by every autosave; guards the read-merge-write of recorded_answers
    answers_revision = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=True)
    score = Column(Integer, nullable=True)  # points earned
    score_percentage = Column(Integer, nullable=True)
    passed = Column(Boolean, nullable=True)
    question_results = Column(JSON, nullable=True)
    time_taken_seconds = Column(Integer, nullable=True)
    progress_applied_at = Column(DateTime, nullable=True)

    user = relationship("User", backref="attempts", foreign_keys=[user_id])
    test = relationship("TestDefinition", foreign_keys=[test_id])


class SubjectProgress(Base):
    __tablename__ = "subject_progress"
    __table_args__ = (UniqueConstraint("user_id", "subject_area", name="uq_subject_progress_user_subject"),)

    id = Column(String, primary_key=True, index=True)  # uuid
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    subject_area = Column(SQLEnum(SubjectArea), nullable=False)
    total_tests_taken = Column(Integer, default=0, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    correct_answers = Column(Integer, default=0, nullable=False)
    average_score = Column(Float, default=0.0, nullable=False)
    weak_areas = Column(JSON, nullable=False, default=list)
    strong_areas = Column(JSON, nullable=False, default=list)
    last_test_date = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class EngagementState(Base):
    __tablename__ = "engagement_states"
    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    daily_streak = Column(Integer, default=0, nullable=False)
    last_daily_test_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class Evaluation(Base):
    __tablename__ = "evaluations"
    id = Column(String, primary_key=True, index=True)  # uuid
    attempt_id = Column(String, ForeignKey("attempts.id"), unique=True, nullable=False)
    overall_score = Column(Float, nullable=False)
    detailed_feedback = Column(JSON, nullable=False, default=dict)
    improvement_areas = Column(JSON, nullable=False, default=list)
    strengths = Column(JSON, nullable=False, default=list)
    recommended_study = Column(JSON, nullable=False, default=list)
    difficulty_analysis = Column(JSON, nullable=False, default=dict)
    performance_trends = Column(JSON, nullable=False, default=dict)
    workflow_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    attempt = relationship("Attempt", backref="evaluation", foreign_keys=[attempt_id])


class WeeklyAssignment(Base):
    __tablename__ = "weekly_assignments"
    id = Column(String, primary_key=True, index=True)  # uuid
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    test_id = Column(String, ForeignKey("test_definitions.id"), nullable=False)
    assigned_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    completing_attempt_id = Column(String, ForeignKey("attempts.id"), nullable=True)
    # "<user_id>" while active, NULL once completed or expired. The unique
    # constraint allows a single active assignment per user.
    active_key = Column(String, unique=True, nullable=True)

    test = relationship("TestDefinition", foreign_keys=[test_id])


class Recommendation(Base):
    __tablename__ = "recommendations"
    id = Column(String, primary_key=True, index=True)  # uuid
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    recommendation_type = Column(SQLEnum(RecommendationType), nullable=False)
    content = Column(JSON, nullable=False, default=dict)
    priority = Column(Integer, default=1, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    workflow_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
