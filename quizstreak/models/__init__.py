"""Data models for quizzes, runs and streaks."""

from .ids import generate_id
from .quiz import (
    FREEZER_COST,
    MAX_ANSWERS,
    MAX_FREEZERS,
    MIN_ANSWERS,
    Answer,
    DayStatus,
    PausedRun,
    Question,
    Quiz,
    QuizRun,
    QuizRunAnswer,
    Settings,
    StoreState,
    StreakData,
)
from .results import (
    FailureKind,
    InvalidSessionStateError,
    OperationResult,
    QuizStreakError,
    StoreNotInitializedError,
)

__all__ = [
    "generate_id",
    "Answer",
    "Question",
    "Quiz",
    "QuizRunAnswer",
    "QuizRun",
    "PausedRun",
    "Settings",
    "StreakData",
    "DayStatus",
    "StoreState",
    "MAX_FREEZERS",
    "FREEZER_COST",
    "MIN_ANSWERS",
    "MAX_ANSWERS",
    # Operation outcomes
    "FailureKind",
    "OperationResult",
    "QuizStreakError",
    "StoreNotInitializedError",
    "InvalidSessionStateError",
]
