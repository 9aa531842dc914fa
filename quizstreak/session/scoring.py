"""Answer grading and score arithmetic."""

from typing import Iterable

from pydantic import BaseModel, Field

from quizstreak.models.quiz import Question, QuizRunAnswer


class Score(BaseModel):
    """Counts and percentage over a set of submitted answers."""

    total_questions: int = Field(default=0, ge=0)
    correct_count: int = Field(default=0, ge=0)
    wrong_count: int = Field(default=0, ge=0)
    score_percentage: float = Field(default=0.0, ge=0.0, le=100.0)


def is_correct_selection(question: Question, selected_ids: Iterable[str]) -> bool:
    """
    Grade a selection by exact set equality with the correct answers.

    Selecting only some of the correct answers, or any extra answer, is wrong.
    """
    return set(selected_ids) == question.correct_answer_ids


def score_answers(answers: list[QuizRunAnswer]) -> Score:
    """Score only the answers that were actually submitted."""
    total = len(answers)
    if total == 0:
        return Score()
    correct = sum(1 for a in answers if a.is_correct)
    return Score(
        total_questions=total,
        correct_count=correct,
        wrong_count=total - correct,
        score_percentage=100 * correct / total,
    )
