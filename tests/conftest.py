"""Shared test fixtures and configuration for pytest."""

from datetime import datetime, timedelta

import pytest

from quizstreak.models.quiz import Answer, Question, Quiz
from quizstreak.store import ManualScheduler, MemoryStorage, QuizStore


class FakeClock:
    """Settable local clock for the store."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at noon on 2024-03-10."""
    return FakeClock(datetime(2024, 3, 10, 12, 0, 0))


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(storage: MemoryStorage, scheduler: ManualScheduler, clock: FakeClock) -> QuizStore:
    """An initialized store on in-memory storage with a manual scheduler."""
    quiz_store = QuizStore(storage, scheduler=scheduler, clock=clock)
    quiz_store.init()
    return quiz_store


@pytest.fixture
def sample_answers() -> list[dict]:
    """Answers for a single-choice question."""
    return [
        {"text": "London", "is_correct": False},
        {"text": "Paris", "is_correct": True},
        {"text": "Berlin", "is_correct": False},
    ]


@pytest.fixture
def sample_question() -> Question:
    """A multi-select question with two correct answers."""
    return Question(
        id="q-primes",
        text="Which numbers are prime?",
        order_index=0,
        answers=[
            Answer(id="a-2", text="2", is_correct=True),
            Answer(id="a-3", text="3", is_correct=True),
            Answer(id="a-4", text="4", is_correct=False),
        ],
    )


def make_questions(count: int) -> list[dict]:
    """`count` single-choice questions; the first answer is always correct."""
    return [
        {
            "id": f"q{i}",
            "text": f"Question {i}?",
            "order_index": i,
            "answers": [
                {"id": f"q{i}-right", "text": "Right", "is_correct": True},
                {"id": f"q{i}-wrong", "text": "Wrong", "is_correct": False},
                {"id": f"q{i}-other", "text": "Other", "is_correct": False},
            ],
        }
        for i in range(count)
    ]


@pytest.fixture
def sample_quiz(store: QuizStore, sample_question: Question) -> Quiz:
    """A stored quiz: the multi-select question followed by two single-choice ones."""
    questions = [sample_question.model_dump()] + [
        {**q, "order_index": q["order_index"] + 1} for q in make_questions(2)
    ]
    result = store.add_quiz("Test Quiz", "A test quiz", questions)
    assert result.ok
    return result.value


@pytest.fixture
def ten_question_quiz(store: QuizStore) -> Quiz:
    """A stored quiz with ten single-choice questions q0..q9."""
    result = store.add_quiz("Ten Questions", "", make_questions(10))
    assert result.ok
    return result.value


@pytest.fixture
def question_factory():
    """Factory building single-choice question payloads."""
    return make_questions
