"""Tests for Pydantic models."""

import pytest
from pydantic import ValidationError

from quizstreak.models import (
    DayStatus,
    FailureKind,
    OperationResult,
    PausedRun,
    Question,
    Quiz,
    QuizRun,
    QuizRunAnswer,
    Settings,
    StoreState,
    StreakData,
    generate_id,
)


class TestIds:
    """Test identifier generation."""

    def test_ids_are_unique_strings(self):
        ids = {generate_id() for _ in range(1000)}
        assert len(ids) == 1000
        assert all(isinstance(i, str) and i for i in ids)


class TestQuestion:
    """Test Question model."""

    def test_correct_answer_ids(self, sample_question: Question):
        """Test that every answer marked correct is reported."""
        assert sample_question.correct_answer_ids == {"a-2", "a-3"}
        assert sample_question.is_playable

    def test_question_without_correct_answer_is_not_playable(self):
        question = Question(text="?", answers=[{"text": "a"}, {"text": "b"}])
        assert not question.is_playable

    def test_accepts_camel_case_document(self):
        """Test loading the stored camelCase form."""
        question = Question.model_validate(
            {
                "id": "q1",
                "text": "Sky?",
                "orderIndex": 4,
                "answers": [{"id": "a1", "text": "Blue", "isCorrect": True}],
            }
        )
        assert question.order_index == 4
        assert question.answers[0].is_correct


class TestQuiz:
    """Test Quiz model."""

    def test_sorted_questions_follow_order_index(self):
        quiz = Quiz(
            title="Q",
            questions=[
                Question(id="b", order_index=2),
                Question(id="a", order_index=0),
                Question(id="c", order_index=1),
            ],
        )
        assert [q.id for q in quiz.sorted_questions] == ["a", "c", "b"]

    def test_blank_title_is_not_valid(self):
        assert not Quiz(title="   ").is_valid
        assert Quiz(title="History").is_valid

    def test_find_question(self, sample_question: Question):
        quiz = Quiz(title="Q", questions=[sample_question])
        assert quiz.find_question("q-primes") is sample_question
        assert quiz.find_question("missing") is None

    def test_document_uses_camel_case(self):
        document = Quiz(title="Q").to_document()
        assert "createdAt" in document
        assert "updatedAt" in document
        assert "created_at" not in document


class TestQuizRun:
    """Test QuizRun model."""

    def test_run_is_immutable(self):
        run = QuizRun(
            quiz_id="quiz",
            score_percentage=50,
            total_questions=2,
            correct_count=1,
            wrong_count=1,
        )
        with pytest.raises(ValidationError):
            run.score_percentage = 100

    def test_score_must_be_a_percentage(self):
        with pytest.raises(ValidationError):
            QuizRun(
                quiz_id="quiz",
                score_percentage=120,
                total_questions=1,
                correct_count=1,
                wrong_count=0,
            )

    def test_selected_answers_are_a_set(self):
        answer = QuizRunAnswer(question_id="q", selected_answer_ids=["a", "b", "a"])
        assert answer.selected_answer_ids == {"a", "b"}


class TestPausedRun:
    """Test PausedRun model."""

    def test_optional_order_fields_default_to_none(self):
        paused = PausedRun(quiz_id="quiz")
        assert paused.question_ids is None
        assert paused.question_order is None
        assert paused.answer_order is None

    def test_index_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            PausedRun(quiz_id="quiz", current_question_index=-1)


class TestSettingsAndStreak:
    """Test Settings and StreakData defaults."""

    def test_settings_defaults(self):
        settings = Settings()
        assert settings.default_shuffle is False
        assert settings.default_shuffle_answers is False
        assert settings.auto_advance_delay == 1.5
        assert settings.manual_confirmation is False
        assert settings.vibration_enabled is True

    def test_streak_defaults(self):
        streak = StreakData()
        assert streak.current_streak == 0
        assert streak.last_completed_date is None
        assert streak.last_completed_day is None
        assert streak.freezers == 0
        assert streak.history == {}

    def test_history_values_are_day_statuses(self):
        streak = StreakData.model_validate({"history": {"2024-01-01": "freezed"}})
        assert streak.history["2024-01-01"] is DayStatus.FREEZED

    def test_negative_diamonds_rejected(self):
        with pytest.raises(ValidationError):
            StoreState(diamonds=-1)


class TestOperationResult:
    """Test OperationResult helpers."""

    def test_success_is_truthy(self):
        result = OperationResult.success(42)
        assert result
        assert result.value == 42
        assert result.failure is None

    def test_not_found_is_falsy(self):
        result = OperationResult.not_found("Quiz", "abc")
        assert not result
        assert result.failure == FailureKind.NOT_FOUND
        assert "abc" in result.message
