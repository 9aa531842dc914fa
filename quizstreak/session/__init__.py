"""Quiz session engine and scoring."""

from .engine import (
    QuizSession,
    SessionResult,
    SessionState,
    prepare_questions,
    resume_session,
    start_session,
)
from .scoring import Score, is_correct_selection, score_answers

__all__ = [
    "QuizSession",
    "SessionResult",
    "SessionState",
    "prepare_questions",
    "start_session",
    "resume_session",
    "Score",
    "is_correct_selection",
    "score_answers",
]
