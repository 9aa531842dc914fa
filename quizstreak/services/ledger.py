"""Run ledger: append-only history of completed runs and the diamond balance."""

import logging
from datetime import datetime

from pydantic import BaseModel, Field

from quizstreak.models.quiz import (
    DIAMONDS_PER_QUESTION,
    Quiz,
    QuizRun,
    QuizRunAnswer,
    StoreState,
)
from quizstreak.models.results import OperationResult

logger = logging.getLogger(__name__)


class QuizStats(BaseModel):
    """Aggregate performance for one quiz."""

    attempts: int = Field(default=0, ge=0)
    best_score: float | None = None
    average_score: float | None = None
    last_score: float | None = None
    last_played: datetime | None = None


def diamonds_for(total_questions: int, score_percentage: float) -> float:
    """Reward for a run: half a diamond per question, scaled by accuracy."""
    return total_questions * DIAMONDS_PER_QUESTION * (score_percentage / 100)


def add_run(
    state: StoreState,
    quiz_id: str,
    quiz_title: str,
    score_percentage: float,
    total_questions: int,
    correct_count: int,
    wrong_count: int,
    answers: list[QuizRunAnswer],
    is_incomplete: bool = False,
    now: datetime | None = None,
) -> OperationResult:
    """
    Record a finished run, newest first, and credit its diamonds.

    Args:
        state: Store state to append to
        quiz_id: Quiz the run belongs to
        quiz_title: Title snapshot kept even if the quiz is deleted later
        score_percentage: 0-100 score over the answered questions
        total_questions: Number of answered questions
        correct_count: Correctly answered questions
        wrong_count: Wrongly answered questions
        answers: Graded answers in the order they were submitted
        is_incomplete: True when the run was ended early

    Returns:
        OperationResult whose value is the new QuizRun
    """
    earned = diamonds_for(total_questions, score_percentage)
    run = QuizRun(
        quiz_id=quiz_id,
        quiz_title=quiz_title,
        timestamp=now or datetime.now(),
        score_percentage=score_percentage,
        total_questions=total_questions,
        correct_count=correct_count,
        wrong_count=wrong_count,
        answers=[a.model_copy(deep=True) for a in answers],
        is_incomplete=is_incomplete,
        diamonds_earned=earned,
    )
    state.runs.insert(0, run)
    state.diamonds += earned
    logger.info(
        "Recorded run %s for quiz %s: %.1f%% over %d questions, +%.2f diamonds",
        run.id,
        quiz_id,
        score_percentage,
        total_questions,
        earned,
    )
    return OperationResult.success(run)


def get_run(state: StoreState, run_id: str) -> QuizRun | None:
    for run in state.runs:
        if run.id == run_id:
            return run
    return None


def runs_for_quiz(state: StoreState, quiz_id: str) -> list[QuizRun]:
    """Runs of one quiz, newest first."""
    return [r for r in state.runs if r.quiz_id == quiz_id]


def wrong_answers(run: QuizRun) -> list[QuizRunAnswer]:
    return [a for a in run.answers if not a.is_correct]


def retry_question_ids(run: QuizRun, quiz: Quiz | None) -> list[str]:
    """
    Ids of the wrongly answered questions that still exist and can be played.

    Used to start a "retry mistakes" mini-run.
    """
    if quiz is None:
        return []
    playable = {q.id for q in quiz.questions if q.is_playable}
    return [a.question_id for a in wrong_answers(run) if a.question_id in playable]


def quiz_stats(state: StoreState, quiz_id: str) -> QuizStats:
    """Attempts and best/average/last score for a quiz."""
    runs = runs_for_quiz(state, quiz_id)
    if not runs:
        return QuizStats()

    scores = [r.score_percentage for r in runs]
    latest = max(runs, key=lambda r: r.timestamp)
    return QuizStats(
        attempts=len(runs),
        best_score=max(scores),
        average_score=sum(scores) / len(scores),
        last_score=latest.score_percentage,
        last_played=latest.timestamp,
    )
