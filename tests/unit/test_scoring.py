"""Unit tests for the scoring engine (pure functions, no DB)."""
import pytest

from examprep.services.errors import MalformedQuestionSet
from examprep.services.scoring import QuestionKey, percentage_of, score, validate_question_set

ABCD = [QuestionKey(f"q{i}", answer) for i, answer in enumerate("ABCD", start=1)]


@pytest.mark.unit
class TestScore:
    def test_two_of_four_is_fifty_percent(self):
        result = score(ABCD, {"q1": "A", "q2": "X", "q3": "C", "q4": "Y"}, passing_score=70)
        assert result.correct_count == 2
        assert result.total_questions == 4
        assert result.percentage == 50
        assert result.passed is False
        assert [o.is_correct for o in result.per_question] == [True, False, True, False]

    def test_deterministic(self):
        answers = {"q1": "A", "q2": "X", "q3": "C", "q4": "Y"}
        assert score(ABCD, answers, 70) == score(ABCD, dict(answers), 70)

    def test_exact_string_match_only(self):
        result = score([QuestionKey("q1", "F=ma")], {"q1": "f=ma"}, 50)
        assert result.correct_count == 0
        result = score([QuestionKey("q1", "F=ma")], {"q1": " F=ma"}, 50)
        assert result.correct_count == 0

    def test_unanswered_counts_as_incorrect(self):
        result = score(ABCD, {"q1": "A"}, 70)
        assert result.correct_count == 1
        assert result.percentage == 25
        missing = [o for o in result.per_question if o.submitted_answer is None]
        assert len(missing) == 3
        assert all(not o.is_correct for o in missing)

    def test_unknown_question_ids_ignored(self):
        result = score(ABCD, {"q1": "A", "zzz": "A"}, 70)
        assert result.correct_count == 1
        assert {o.question_id for o in result.per_question} == {"q1", "q2", "q3", "q4"}

    def test_passing_score_is_inclusive(self):
        keys = [QuestionKey(f"q{i}", "x") for i in range(10)]
        answers = {f"q{i}": "x" for i in range(7)}
        assert score(keys, answers, 70).passed is True
        assert score(keys, answers, 71).passed is False

    def test_points_weighting(self):
        keys = [QuestionKey("q1", "a", points=3), QuestionKey("q2", "b", points=1)]
        result = score(keys, {"q1": "a", "q2": "nope"}, 50)
        assert result.points_earned == 3
        assert result.points_possible == 4
        assert result.per_question[0].points_awarded == 3
        assert result.per_question[1].points_awarded == 0
        # percentage counts questions, not points
        assert result.percentage == 50

    def test_outcome_to_dict(self):
        outcome = score(ABCD, {"q1": "A"}, 70).per_question[0]
        assert outcome.to_dict() == {
            "question_id": "q1",
            "is_correct": True,
            "submitted_answer": "A",
            "correct_answer": "A",
            "points_awarded": 1,
        }


@pytest.mark.unit
class TestPercentage:
    def test_half_rounds_up(self):
        assert percentage_of(1, 8) == 13  # 12.5

    def test_thirds(self):
        assert percentage_of(1, 3) == 33
        assert percentage_of(2, 3) == 67

    def test_bounds(self):
        assert percentage_of(0, 5) == 0
        assert percentage_of(5, 5) == 100

    def test_zero_total_is_malformed(self):
        with pytest.raises(MalformedQuestionSet):
            percentage_of(0, 0)


@pytest.mark.unit
class TestValidateQuestionSet:
    def test_empty(self):
        with pytest.raises(MalformedQuestionSet):
            score([], {}, 70)

    def test_duplicate_ids(self):
        with pytest.raises(MalformedQuestionSet) as exc:
            validate_question_set([QuestionKey("q1", "a"), QuestionKey("q1", "b")])
        assert exc.value.details["question_id"] == "q1"

    def test_negative_points(self):
        with pytest.raises(MalformedQuestionSet):
            validate_question_set([QuestionKey("q1", "a", points=-1)])

    def test_total_mismatch(self):
        with pytest.raises(MalformedQuestionSet) as exc:
            score(ABCD, {}, 70, total_questions=5)
        assert exc.value.status_code == 500
        assert exc.value.details == {"total_questions": 5, "attached": 4}

    def test_valid_set_passes(self):
        validate_question_set(ABCD, 4)
