"""
Scoring engine.

Pure functions only: no DB, no clock, no logging. Identical inputs always produce
identical output, which is what makes a retried submit safe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional, Sequence

from examprep.services.errors import MalformedQuestionSet


@dataclass(frozen=True)
class QuestionKey:
    question_id: str
    correct_answer: str
    points: int = 1


@dataclass(frozen=True)
class QuestionOutcome:
    question_id: str
    is_correct: bool
    submitted_answer: Optional[str]
    correct_answer: str
    points_awarded: int

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "is_correct": self.is_correct,
            "submitted_answer": self.submitted_answer,
            "correct_answer": self.correct_answer,
            "points_awarded": self.points_awarded,
        }


@dataclass(frozen=True)
class ScoreResult:
    correct_count: int
    total_questions: int
    percentage: int
    passed: bool
    points_earned: int
    points_possible: int
    per_question: list[QuestionOutcome] = field(default_factory=list)


def percentage_of(correct_count: int, total_questions: int) -> int:
    """Whole-number percentage, .5 rounds up (12.5 -> 13)."""
    if total_questions <= 0:
        raise MalformedQuestionSet("total_questions must be positive")
    raw = Decimal(correct_count * 100) / Decimal(total_questions)
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def validate_question_set(questions: Sequence[QuestionKey], total_questions: Optional[int] = None) -> None:
    if not questions:
        raise MalformedQuestionSet("question set is empty")
    seen: set[str] = set()
    for q in questions:
        if not q.question_id:
            raise MalformedQuestionSet("question without an id")
        if q.question_id in seen:
            raise MalformedQuestionSet(f"duplicate question id {q.question_id!r}", question_id=q.question_id)
        if q.points < 0:
            raise MalformedQuestionSet(f"negative weight on {q.question_id!r}", question_id=q.question_id)
        seen.add(q.question_id)
    if total_questions is not None and total_questions != len(questions):
        raise MalformedQuestionSet(
            f"total_questions={total_questions} but {len(questions)} questions are attached",
            total_questions=total_questions,
            attached=len(questions),
        )


def score(
    questions: Sequence[QuestionKey],
    answers: Mapping[str, str],
    passing_score: int,
    total_questions: Optional[int] = None,
) -> ScoreResult:
    """
    Score submitted answers against the answer key.

    Comparison is exact string equality: no trimming, no case folding.
    Questions missing from `answers` count as incorrect.
    Answers for unknown question ids are ignored.
    """
    validate_question_set(questions, total_questions)

    outcomes: list[QuestionOutcome] = []
    correct = 0
    earned = 0
    for q in questions:
        submitted = answers.get(q.question_id)
        is_correct = submitted is not None and submitted == q.correct_answer
        if is_correct:
            correct += 1
            earned += q.points
        outcomes.append(
            QuestionOutcome(
                question_id=q.question_id,
                is_correct=is_correct,
                submitted_answer=submitted,
                correct_answer=q.correct_answer,
                points_awarded=q.points if is_correct else 0,
            )
        )

    pct = percentage_of(correct, len(questions))
    return ScoreResult(
        correct_count=correct,
        total_questions=len(questions),
        percentage=pct,
        passed=pct >= passing_score,
        points_earned=earned,
        points_possible=sum(q.points for q in questions),
        per_question=outcomes,
    )
