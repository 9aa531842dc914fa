"""Session engine: runs one quiz attempt from the first question to the result."""

import logging
import random
import threading
from enum import Enum
from typing import Iterable, TypeVar

from pydantic import BaseModel, Field

from quizstreak.models.ids import generate_id
from quizstreak.models.quiz import PausedRun, Question, Quiz, QuizRunAnswer
from quizstreak.models.results import (
    FailureKind,
    InvalidSessionStateError,
    OperationResult,
)
from quizstreak.services.catalog import playable_questions
from quizstreak.session.scoring import is_correct_selection, score_answers
from quizstreak.store.scheduler import ScheduledTask, Scheduler
from quizstreak.store.store import QuizStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(str, Enum):
    """Where a session is in its lifecycle."""

    SELECTING = "selecting"
    SUBMITTED = "submitted"
    PAUSED = "paused"
    FINISHED = "finished"
    EXITED = "exited"


LIVE_STATES = (SessionState.SELECTING, SessionState.SUBMITTED)


class SessionResult(BaseModel):
    """Outcome of a finished session; only full runs are saved to the ledger."""

    quiz_id: str
    quiz_title: str
    score_percentage: float = 0.0
    total_questions: int = 0
    correct_count: int = 0
    wrong_count: int = 0
    answers: list[QuizRunAnswer] = Field(default_factory=list)
    is_incomplete: bool = False
    is_mini_run: bool = False
    run_id: str | None = None
    diamonds_earned: float = 0.0


def shuffled(items: list[T], rng: random.Random) -> list[T]:
    """Uniform random permutation (Fisher-Yates via `Random.shuffle`) of a copy."""
    result = list(items)
    rng.shuffle(result)
    return result


def prepare_questions(
    quiz: Quiz,
    question_ids: list[str] | None = None,
    shuffle_questions: bool = False,
    shuffle_answers: bool = False,
    rng: random.Random | None = None,
    question_order: list[str] | None = None,
    answer_order: dict[str, list[str]] | None = None,
) -> list[Question]:
    """
    Build the question sequence for a session.

    Unplayable questions are dropped, an optional id subset is applied, the
    rest is sorted by order index and then shuffled as requested. When a
    saved order is given (resuming), it is reproduced instead of reshuffling;
    questions it does not know about are appended.

    Args:
        quiz: Quiz to play
        question_ids: Restrict play to these question ids
        shuffle_questions: Randomize question order
        shuffle_answers: Randomize answer order within each question
        rng: Random source
        question_order: Realized question order to reproduce
        answer_order: Realized answer order per question to reproduce

    Returns:
        Deep copies of the questions in play order
    """
    rng = rng or random.Random()
    questions = [q.model_copy(deep=True) for q in playable_questions(quiz)]
    if question_ids:
        wanted = set(question_ids)
        questions = [q for q in questions if q.id in wanted]

    if question_order:
        position = {qid: i for i, qid in enumerate(question_order)}
        known = sorted(
            (q for q in questions if q.id in position), key=lambda q: position[q.id]
        )
        extra = [q for q in questions if q.id not in position]
        questions = known + (shuffled(extra, rng) if shuffle_questions else extra)
    elif shuffle_questions:
        questions = shuffled(questions, rng)

    for question in questions:
        saved = (answer_order or {}).get(question.id)
        if saved:
            position = {aid: i for i, aid in enumerate(saved)}
            question.answers = sorted(
                question.answers, key=lambda a: position.get(a.id, len(position))
            )
        elif shuffle_answers:
            question.answers = shuffled(question.answers, rng)

    return questions


class QuizSession:
    """
    One attempt at a quiz.

    SELECTING -> SUBMITTED -> SELECTING (next question) or FINISHED. A live
    session can be PAUSED; pausing a mini-run just EXITS. Every transition
    cancels a pending auto-advance, and a stale timer that fires anyway is
    ignored because its generation no longer matches. Transitions and the
    auto-advance callback hold one reentrant lock, since a threaded scheduler
    runs the callback off the caller's thread.
    """

    def __init__(
        self,
        store: QuizStore,
        quiz: Quiz,
        questions: list[Question],
        shuffle_questions: bool = False,
        shuffle_answers: bool = False,
        question_ids: list[str] | None = None,
        scheduler: Scheduler | None = None,
        auto_advance: bool | None = None,
        paused_id: str | None = None,
    ):
        if not questions:
            raise ValueError("A session needs at least one question")

        settings = store.read().settings
        self.store = store
        self.quiz_id = quiz.id
        self.quiz_title = quiz.title
        self.questions = questions
        self.shuffle_questions = shuffle_questions
        self.shuffle_answers = shuffle_answers
        self.question_ids = list(question_ids) if question_ids else None
        self.scheduler = scheduler or store.scheduler
        self.auto_advance = (
            not settings.manual_confirmation if auto_advance is None else auto_advance
        )
        self.auto_advance_delay = settings.auto_advance_delay
        self.paused_id = paused_id

        self.state = SessionState.SELECTING
        self.current_index = 0
        self.selected_answer_ids: list[str] = []
        self.answers: list[QuizRunAnswer] = []
        self.result: SessionResult | None = None

        self._generation = 0
        self._pending_advance: ScheduledTask | None = None
        self._lock = threading.RLock()

    # Read-only views

    @property
    def is_mini_run(self) -> bool:
        """Practice sessions over a question subset never touch history or streaks."""
        return bool(self.question_ids)

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index >= len(self.questions) - 1

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def can_submit(self) -> bool:
        return self.state == SessionState.SELECTING and bool(self.selected_answer_ids)

    @property
    def has_pending_advance(self) -> bool:
        return self._pending_advance is not None

    def answer_for(self, question_id: str) -> QuizRunAnswer | None:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None

    # Transitions

    def toggle(self, answer_id: str) -> OperationResult:
        """Select an answer, or deselect it if it is already selected."""
        with self._lock:
            self._require(SessionState.SELECTING, action="select an answer")
            if answer_id not in {a.id for a in self.current_question.answers}:
                return OperationResult.invalid(
                    f"Answer '{answer_id}' is not part of this question"
                )

            if answer_id in self.selected_answer_ids:
                self.selected_answer_ids.remove(answer_id)
            else:
                self.selected_answer_ids.append(answer_id)
            return OperationResult.success(list(self.selected_answer_ids))

    def submit(self) -> OperationResult:
        """
        Grade the current selection and freeze it.

        Returns:
            OperationResult whose value is the graded QuizRunAnswer
        """
        with self._lock:
            self._require(SessionState.SELECTING, action="submit")
            if not self.selected_answer_ids:
                return OperationResult.invalid("Select at least one answer before submitting")

            question = self.current_question
            answer = self.answer_for(question.id)
            if answer is None:
                answer = QuizRunAnswer(
                    question_id=question.id,
                    selected_answer_ids=set(self.selected_answer_ids),
                    is_correct=is_correct_selection(question, self.selected_answer_ids),
                )
                self.answers.append(answer)
            else:
                logger.warning(
                    "Question %s already answered, keeping first submission", question.id
                )

            self._transition(SessionState.SUBMITTED)
            if self.auto_advance:
                generation = self._generation
                self._pending_advance = self.scheduler.call_later(
                    self.auto_advance_delay, lambda: self._auto_advance(generation)
                )
            return OperationResult.success(answer)

    def next(self) -> SessionResult | None:
        """
        Leave the feedback view: go to the next question or finish.

        Returns:
            The SessionResult when this finished the session, otherwise None
        """
        with self._lock:
            self._require(SessionState.SUBMITTED, action="advance")
            if self.is_last_question:
                return self._complete(is_incomplete=False)

            self.current_index += 1
            self.selected_answer_ids = []
            self._transition(SessionState.SELECTING)
            return None

    def end_early(self) -> SessionResult:
        """Finish now, scoring only the questions already submitted."""
        with self._lock:
            self._require(*LIVE_STATES, action="end early")
            return self._complete(is_incomplete=True)

    def pause(self) -> OperationResult:
        """
        Suspend the session.

        Returns:
            OperationResult whose value is the paused run id (None for a mini-run)
        """
        with self._lock:
            self._require(*LIVE_STATES, action="pause")
            if self.state == SessionState.SUBMITTED and self.is_last_question:
                raise InvalidSessionStateError(
                    "Cannot pause after the final answer was submitted"
                )

            if self.is_mini_run:
                self._transition(SessionState.EXITED)
                logger.info("Mini-run on quiz %s exited without saving", self.quiz_id)
                return OperationResult.success(None)

            saved = self._capture()
            self._transition(SessionState.PAUSED)
            return saved

    def on_backgrounded(self) -> str | None:
        """
        Save progress when the app goes to the background.

        The session stays live. If the final answer was already submitted the
        run is completed right away so it cannot be lost.

        Returns:
            The paused run id when progress was captured
        """
        with self._lock:
            if self.is_mini_run or self.state not in LIVE_STATES:
                return None

            if self.state == SessionState.SUBMITTED and self.is_last_question:
                self._complete(is_incomplete=False)
                return None

            saved = self._capture()
            return saved.value if saved.ok else None

    def on_foregrounded(self) -> None:
        """Returning to the foreground changes nothing; the state is already saved."""
        with self._lock:
            logger.debug(
                "Session on quiz %s back in foreground (%s)", self.quiz_id, self.state.value
            )

    def close(self) -> None:
        """Tear down the session without saving anything further."""
        with self._lock:
            if self.state in LIVE_STATES:
                self._transition(SessionState.EXITED)
            else:
                self._cancel_pending_advance()

    # Internals

    def _require(self, *states: SessionState, action: str) -> None:
        if self.state not in states:
            raise InvalidSessionStateError(f"Cannot {action} while {self.state.value}")

    def _transition(self, state: SessionState) -> None:
        self._cancel_pending_advance()
        self._generation += 1
        self.state = state

    def _cancel_pending_advance(self) -> None:
        if self._pending_advance is not None:
            self._pending_advance.cancel()
            self._pending_advance = None

    def _auto_advance(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self.state != SessionState.SUBMITTED:
                logger.debug("Ignoring stale auto-advance for quiz %s", self.quiz_id)
                return
            self._pending_advance = None
            self.next()

    def _capture(self) -> OperationResult:
        if self.state == SessionState.SUBMITTED:
            index, selected = self.current_index + 1, []
        else:
            index, selected = self.current_index, list(self.selected_answer_ids)

        record = PausedRun(
            id=self.paused_id or generate_id(),
            quiz_id=self.quiz_id,
            current_question_index=index,
            selected_answer_ids=selected,
            answers=[a.model_copy(deep=True) for a in self.answers],
            shuffle=self.shuffle_questions,
            shuffle_answers=self.shuffle_answers,
            question_ids=self.question_ids,
            question_order=[q.id for q in self.questions],
            answer_order={q.id: [a.id for a in q.answers] for q in self.questions},
        )
        saved = self.store.save_paused_run(record)
        if saved.ok:
            self.paused_id = saved.value
            logger.info(
                "Paused quiz %s at question %d/%d", self.quiz_id, index + 1, len(self.questions)
            )
        return saved

    def _complete(self, is_incomplete: bool) -> SessionResult:
        self._transition(SessionState.FINISHED)
        score = score_answers(self.answers)
        result = SessionResult(
            quiz_id=self.quiz_id,
            quiz_title=self.quiz_title,
            answers=list(self.answers),
            is_incomplete=is_incomplete,
            is_mini_run=self.is_mini_run,
            **score.model_dump(),
        )

        if not self.is_mini_run:
            if self.answers:
                recorded = self.store.add_run(
                    quiz_id=self.quiz_id,
                    quiz_title=self.quiz_title,
                    score_percentage=score.score_percentage,
                    total_questions=score.total_questions,
                    correct_count=score.correct_count,
                    wrong_count=score.wrong_count,
                    answers=self.answers,
                    is_incomplete=is_incomplete,
                )
                run = recorded.value
                result.run_id = run.id
                result.diamonds_earned = run.diamonds_earned or 0.0
                self.store.update_streak()
            if self.paused_id and self.store.get_paused_run(self.paused_id):
                self.store.delete_paused_run(self.paused_id)

        self.result = result
        logger.info(
            "Finished quiz %s: %d/%d correct%s",
            self.quiz_id,
            score.correct_count,
            score.total_questions,
            " (ended early)" if is_incomplete else "",
        )
        return result


def start_session(
    store: QuizStore,
    quiz_id: str,
    shuffle_questions: bool | None = None,
    shuffle_answers: bool | None = None,
    question_ids: Iterable[str] | None = None,
    discard_paused: bool = False,
    rng: random.Random | None = None,
    scheduler: Scheduler | None = None,
    auto_advance: bool | None = None,
) -> OperationResult:
    """
    Start a fresh session on a quiz.

    A full run cannot start while the quiz has a paused run, unless
    `discard_paused` is set, which deletes those paused runs first.

    Returns:
        OperationResult whose value is the new QuizSession
    """
    quiz = store.get_quiz(quiz_id)
    if quiz is None:
        return OperationResult.not_found("Quiz", quiz_id)

    settings = store.read().settings
    if shuffle_questions is None:
        shuffle_questions = settings.default_shuffle
    if shuffle_answers is None:
        shuffle_answers = settings.default_shuffle_answers
    subset = list(question_ids) if question_ids else None

    if subset is None:
        existing = store.paused_runs_for_quiz(quiz_id)
        if existing and not discard_paused:
            return OperationResult.fail(
                FailureKind.SESSION_CONFLICT,
                "This quiz has a paused run; resume or discard it first",
            )
        for record in existing:
            store.delete_paused_run(record.id)

    questions = prepare_questions(quiz, subset, shuffle_questions, shuffle_answers, rng)
    if not questions:
        return OperationResult.invalid("This quiz has no playable questions")

    session = QuizSession(
        store,
        quiz,
        questions,
        shuffle_questions=shuffle_questions,
        shuffle_answers=shuffle_answers,
        question_ids=subset,
        scheduler=scheduler,
        auto_advance=auto_advance,
    )
    logger.info(
        "Started %s on quiz %s with %d questions",
        "mini-run" if session.is_mini_run else "session",
        quiz_id,
        len(questions),
    )
    return OperationResult.success(session)


def resume_session(
    store: QuizStore,
    paused_id: str,
    rng: random.Random | None = None,
    scheduler: Scheduler | None = None,
    auto_advance: bool | None = None,
) -> OperationResult:
    """
    Rebuild a session from a paused run, in the same order it was paused in.

    Returns:
        OperationResult whose value is the resumed QuizSession
    """
    record = store.get_paused_run(paused_id)
    if record is None:
        return OperationResult.not_found("Paused run", paused_id)
    quiz = store.get_quiz(record.quiz_id)
    if quiz is None:
        return OperationResult.not_found("Quiz", record.quiz_id)

    questions = prepare_questions(
        quiz,
        record.question_ids,
        record.shuffle,
        record.shuffle_answers,
        rng,
        question_order=record.question_order,
        answer_order=record.answer_order,
    )
    if not questions:
        return OperationResult.invalid("This quiz has no playable questions left")

    session = QuizSession(
        store,
        quiz,
        questions,
        shuffle_questions=record.shuffle,
        shuffle_answers=record.shuffle_answers,
        question_ids=record.question_ids,
        scheduler=scheduler,
        auto_advance=auto_advance,
        paused_id=record.id,
    )
    session.current_index = min(record.current_question_index, len(questions) - 1)
    current_answers = {a.id for a in session.current_question.answers}
    session.selected_answer_ids = [
        aid for aid in record.selected_answer_ids if aid in current_answers
    ]
    session.answers = [a.model_copy(deep=True) for a in record.answers]
    logger.info("Resumed quiz %s at question %d", quiz.id, session.current_index + 1)
    return OperationResult.success(session)
