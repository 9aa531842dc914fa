"""Pydantic models for quizzes, runs, paused sessions and streak state."""

import re
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from .ids import generate_id

MAX_FREEZERS = 3
FREEZER_COST = 100.0
DIAMONDS_PER_QUESTION = 0.5
MIN_ANSWERS = 2
MAX_ANSWERS = 6

DAY_KEY_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


class StoredModel(BaseModel):
    """Base for every persisted model: snake_case in Python, camelCase on disk."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    def to_document(self) -> dict:
        """Serialize to the JSON-ready, camelCase form used in storage."""
        return self.model_dump(mode="json", by_alias=True)


class DayStatus(str, Enum):
    """Outcome recorded for a calendar day in the streak history."""

    COMPLETED = "completed"
    FREEZED = "freezed"
    MISSED = "missed"


class Answer(StoredModel):
    """One selectable answer of a question."""

    id: str = Field(default_factory=generate_id)
    text: str = Field(default="", description="Answer text")
    is_correct: bool = Field(default=False, description="Whether this answer is correct")


class Question(StoredModel):
    """A question with an ordered list of answers."""

    id: str = Field(default_factory=generate_id)
    text: str = Field(default="", description="The question text")
    order_index: int = Field(default=0, description="Presentation order within the quiz")
    answers: list[Answer] = Field(default_factory=list)
    images: list[str] | None = Field(
        default=None,
        description="Opaque image references (URLs or encoded data)",
    )

    @property
    def correct_answer_ids(self) -> set[str]:
        """Ids of every answer marked correct."""
        return {answer.id for answer in self.answers if answer.is_correct}

    @property
    def is_playable(self) -> bool:
        """A question can be played only if at least one answer is correct."""
        return any(answer.is_correct for answer in self.answers)


class Quiz(StoredModel):
    """An authored quiz (a "test")."""

    id: str = Field(default_factory=generate_id)
    title: str = Field(default="", description="Quiz title")
    description: str = Field(default="", description="Quiz description")
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    questions: list[Question] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """A quiz is valid once it has a non-blank title."""
        return bool(self.title.strip())

    @property
    def sorted_questions(self) -> list[Question]:
        """Questions in presentation order."""
        return sorted(self.questions, key=lambda q: q.order_index)

    def find_question(self, question_id: str) -> Question | None:
        """Look up a question by id."""
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


class QuizRunAnswer(StoredModel):
    """A submitted answer, graded once at submission time."""

    question_id: str
    selected_answer_ids: set[str] = Field(default_factory=set)
    is_correct: bool = False


class QuizRun(StoredModel):
    """A completed (or early-ended) attempt. Never modified once created."""

    model_config = {"frozen": True}

    id: str = Field(default_factory=generate_id)
    quiz_id: str
    quiz_title: str = Field(default="", description="Title snapshot at run time")
    timestamp: datetime = Field(default_factory=datetime.now)
    score_percentage: float = Field(..., ge=0.0, le=100.0)
    total_questions: int = Field(..., ge=0)
    correct_count: int = Field(..., ge=0)
    wrong_count: int = Field(..., ge=0)
    answers: list[QuizRunAnswer] = Field(default_factory=list)
    is_incomplete: bool | None = None
    diamonds_earned: float | None = None


class PausedRun(StoredModel):
    """A suspended session that can be resumed later."""

    id: str = Field(default_factory=generate_id)
    quiz_id: str
    current_question_index: int = Field(default=0, ge=0)
    selected_answer_ids: list[str] = Field(default_factory=list)
    answers: list[QuizRunAnswer] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)
    shuffle: bool = False
    shuffle_answers: bool = False
    question_ids: list[str] | None = None
    question_order: list[str] | None = Field(
        default=None,
        description="Realized question order at pause time",
    )
    answer_order: dict[str, list[str]] | None = Field(
        default=None,
        description="Realized answer order per question at pause time",
    )


class Settings(StoredModel):
    """User preferences."""

    default_shuffle: bool = False
    default_shuffle_answers: bool = False
    display_name: str = ""
    avatar_preset: int = Field(default=0, ge=0)
    profile_image: str | None = None
    vibration_enabled: bool = True
    auto_advance_delay: float = Field(default=1.5, ge=0.0, description="Seconds")
    manual_confirmation: bool = False


class StreakData(StoredModel):
    """Daily completion streak and freezer inventory."""

    current_streak: int = Field(default=0, ge=0)
    last_completed_date: str | None = Field(
        default=None,
        description="Local calendar day (YYYY-MM-DD) of the last completion",
    )
    freezers: int = Field(
        default=0,
        ge=0,
        description=f"Inventory; purchases stop at {MAX_FREEZERS}",
    )
    history: dict[str, DayStatus] = Field(default_factory=dict)

    @field_validator("last_completed_date")
    @classmethod
    def validate_last_completed_date(cls, v: str | None) -> str | None:
        """Ensure the day is a real calendar date written as YYYY-MM-DD."""
        if v is None:
            return v
        if not DAY_KEY_PATTERN.fullmatch(v):
            raise ValueError(f"Expected YYYY-MM-DD, got {v!r}")
        date.fromisoformat(v)
        return v

    @property
    def last_completed_day(self) -> date | None:
        """`last_completed_date` parsed into a date."""
        if not self.last_completed_date:
            return None
        return date.fromisoformat(self.last_completed_date)


class StoreState(StoredModel):
    """The whole persisted document."""

    quizzes: list[Quiz] = Field(default_factory=list)
    runs: list[QuizRun] = Field(default_factory=list)
    paused_runs: list[PausedRun] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)
    streak: StreakData = Field(default_factory=StreakData)
    diamonds: float = Field(default=0.0, ge=0.0)

    def find_quiz(self, quiz_id: str) -> Quiz | None:
        """Look up a quiz by id."""
        for quiz in self.quizzes:
            if quiz.id == quiz_id:
                return quiz
        return None
