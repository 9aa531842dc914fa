"""Quiz catalog operations: quizzes and their ordered questions."""

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable

from pydantic import ValidationError

from quizstreak.models.ids import generate_id
from quizstreak.models.quiz import (
    MAX_ANSWERS,
    MIN_ANSWERS,
    Answer,
    Question,
    Quiz,
    StoreState,
)
from quizstreak.models.results import OperationResult

logger = logging.getLogger(__name__)

AnswerInput = Answer | dict[str, Any]
QuestionInput = Question | dict[str, Any]


def touch(quiz: Quiz, now: datetime) -> None:
    """Bump `updated_at`, keeping it strictly increasing even on a coarse clock."""
    if now <= quiz.updated_at:
        now = quiz.updated_at + timedelta(microseconds=1)
    quiz.updated_at = now


def _without_blank_id(data: dict[str, Any]) -> dict[str, Any]:
    """Drop an empty/None id so the model generates a fresh one."""
    data = dict(data)
    if not data.get("id"):
        data.pop("id", None)
    return data


def coerce_answer(answer: AnswerInput) -> Answer:
    """Build an Answer from a model or a mapping, filling in a missing id."""
    if isinstance(answer, Answer):
        return answer.model_copy(update={"id": answer.id or generate_id()}, deep=True)
    return Answer.model_validate(_without_blank_id(answer))


def coerce_question(question: QuestionInput) -> Question:
    """Build a Question (and its answers) from a model or a mapping, filling in ids."""
    if isinstance(question, Question):
        data = question.model_dump()
    else:
        data = dict(question)
    data = _without_blank_id(data)
    data["answers"] = [coerce_answer(a) for a in data.get("answers") or []]
    return Question.model_validate(data)


def validate_question(text: str, answers: list[Answer]) -> tuple[list[Answer], str | None]:
    """
    Apply the editor rules to a question.

    Answers with blank text are discarded before counting.

    Args:
        text: Question text
        answers: Candidate answers

    Returns:
        Tuple of (kept answers, error message or None)
    """
    if not text or not text.strip():
        return answers, "Question text cannot be empty"

    kept = [a for a in answers if a.text.strip()]
    if len(kept) < MIN_ANSWERS:
        return kept, f"A question needs at least {MIN_ANSWERS} answers"
    if len(kept) > MAX_ANSWERS:
        return kept, f"A question can have at most {MAX_ANSWERS} answers"
    if not any(a.is_correct for a in kept):
        return kept, "At least one answer must be marked correct"
    return kept, None


def get_quiz(state: StoreState, quiz_id: str) -> Quiz | None:
    return state.find_quiz(quiz_id)


def list_quizzes(state: StoreState) -> list[Quiz]:
    """Quizzes with the most recently edited first."""
    return sorted(state.quizzes, key=lambda q: q.updated_at, reverse=True)


def playable_questions(quiz: Quiz) -> list[Question]:
    """Questions with at least one correct answer, in presentation order."""
    return [q for q in quiz.sorted_questions if q.is_playable]


def add_quiz(
    state: StoreState,
    title: str,
    description: str = "",
    questions: Iterable[QuestionInput] | None = None,
    now: datetime | None = None,
) -> OperationResult:
    """
    Create a quiz.

    Pre-supplied questions keep their content; missing ids are generated and
    order indexes are reassigned by position when they are not unique.

    Returns:
        OperationResult whose value is the new Quiz
    """
    if not title or not title.strip():
        return OperationResult.invalid("Quiz title cannot be empty")

    try:
        parsed = [coerce_question(q) for q in questions or []]
    except ValidationError as e:
        return OperationResult.invalid(f"Invalid question data: {e.error_count()} error(s)")

    if len({q.order_index for q in parsed}) != len(parsed):
        for index, question in enumerate(parsed):
            question.order_index = index

    now = now or datetime.now()
    quiz = Quiz(
        title=title.strip(),
        description=description or "",
        created_at=now,
        updated_at=now,
        questions=parsed,
    )
    state.quizzes.append(quiz)
    logger.info("Created quiz %s with %d questions", quiz.id, len(parsed))
    return OperationResult.success(quiz)


def update_quiz(
    state: StoreState,
    quiz_id: str,
    title: str | None = None,
    description: str | None = None,
    questions: Iterable[QuestionInput] | None = None,
    now: datetime | None = None,
) -> OperationResult:
    """Merge the given fields into a quiz and bump `updated_at`."""
    quiz = state.find_quiz(quiz_id)
    if quiz is None:
        return OperationResult.not_found("Quiz", quiz_id)

    if title is not None and not title.strip():
        return OperationResult.invalid("Quiz title cannot be empty")

    if questions is not None:
        try:
            parsed = [coerce_question(q) for q in questions]
        except ValidationError as e:
            return OperationResult.invalid(f"Invalid question data: {e.error_count()} error(s)")
        quiz.questions = parsed
    if title is not None:
        quiz.title = title.strip()
    if description is not None:
        quiz.description = description

    touch(quiz, now or datetime.now())
    return OperationResult.success(quiz)


def delete_quiz(state: StoreState, quiz_id: str) -> OperationResult:
    """Delete a quiz together with its runs and paused runs."""
    quiz = state.find_quiz(quiz_id)
    if quiz is None:
        return OperationResult.not_found("Quiz", quiz_id)

    state.quizzes = [q for q in state.quizzes if q.id != quiz_id]
    state.runs = [r for r in state.runs if r.quiz_id != quiz_id]
    state.paused_runs = [p for p in state.paused_runs if p.quiz_id != quiz_id]
    logger.info("Deleted quiz %s and its history", quiz_id)
    return OperationResult.success(quiz)


def add_question(
    state: StoreState,
    quiz_id: str,
    text: str,
    answers: Iterable[AnswerInput],
    images: list[str] | None = None,
    now: datetime | None = None,
) -> OperationResult:
    """Append a validated question after the current last one."""
    quiz = state.find_quiz(quiz_id)
    if quiz is None:
        return OperationResult.not_found("Quiz", quiz_id)

    try:
        parsed_answers = [coerce_answer(a) for a in answers]
    except ValidationError as e:
        return OperationResult.invalid(f"Invalid answer data: {e.error_count()} error(s)")

    kept, error = validate_question(text, parsed_answers)
    if error:
        return OperationResult.invalid(error)

    max_order = max((q.order_index for q in quiz.questions), default=-1)
    question = Question(
        text=text.strip(),
        order_index=max_order + 1,
        answers=kept,
        images=list(images) if images else None,
    )
    quiz.questions.append(question)
    touch(quiz, now or datetime.now())
    return OperationResult.success(question)


def update_question(
    state: StoreState,
    quiz_id: str,
    question_id: str,
    text: str | None = None,
    answers: Iterable[AnswerInput] | None = None,
    images: list[str] | None = None,
    now: datetime | None = None,
) -> OperationResult:
    """Edit one question in place; the merged question must still be valid."""
    quiz = state.find_quiz(quiz_id)
    if quiz is None:
        return OperationResult.not_found("Quiz", quiz_id)
    question = quiz.find_question(question_id)
    if question is None:
        return OperationResult.not_found("Question", question_id)

    new_text = question.text if text is None else text
    try:
        new_answers = (
            question.answers if answers is None else [coerce_answer(a) for a in answers]
        )
    except ValidationError as e:
        return OperationResult.invalid(f"Invalid answer data: {e.error_count()} error(s)")

    kept, error = validate_question(new_text, new_answers)
    if error:
        return OperationResult.invalid(error)

    question.text = new_text.strip()
    question.answers = kept
    if images is not None:
        question.images = list(images) or None
    touch(quiz, now or datetime.now())
    return OperationResult.success(question)


def delete_question(
    state: StoreState, quiz_id: str, question_id: str, now: datetime | None = None
) -> OperationResult:
    """Remove a question and close the gap it leaves in the order indexes."""
    quiz = state.find_quiz(quiz_id)
    if quiz is None:
        return OperationResult.not_found("Quiz", quiz_id)
    question = quiz.find_question(question_id)
    if question is None:
        return OperationResult.not_found("Question", question_id)

    quiz.questions = [q for q in quiz.sorted_questions if q.id != question_id]
    for index, remaining in enumerate(quiz.questions):
        remaining.order_index = index
    touch(quiz, now or datetime.now())
    return OperationResult.success(question)


def reorder_questions(
    state: StoreState,
    quiz_id: str,
    ordered_ids: list[str],
    now: datetime | None = None,
) -> OperationResult:
    """
    Make `ordered_ids` the authoritative question order.

    The list must contain every current question id exactly once; anything
    else is rejected and the quiz is left untouched.
    """
    quiz = state.find_quiz(quiz_id)
    if quiz is None:
        return OperationResult.not_found("Quiz", quiz_id)

    if len(set(ordered_ids)) != len(ordered_ids):
        return OperationResult.invalid("Duplicate question ids in reorder")

    current = {q.id: q for q in quiz.questions}
    if set(ordered_ids) != set(current):
        missing = set(current) - set(ordered_ids)
        unknown = set(ordered_ids) - set(current)
        return OperationResult.invalid(
            f"Reorder must list every question once "
            f"({len(missing)} missing, {len(unknown)} unknown)"
        )

    quiz.questions = [current[qid] for qid in ordered_ids]
    for index, question in enumerate(quiz.questions):
        question.order_index = index
    touch(quiz, now or datetime.now())
    return OperationResult.success(quiz)
