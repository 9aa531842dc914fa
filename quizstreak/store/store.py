"""The persistent store: owns all durable state and saves it with a debounce."""

import logging
import threading
from datetime import date, datetime
from typing import Any, Callable, Iterable, TypeVar

from pydantic import ValidationError

from quizstreak.models.quiz import (
    PausedRun,
    Quiz,
    QuizRun,
    QuizRunAnswer,
    Settings,
    StoreState,
)
from quizstreak.models.results import OperationResult, StoreNotInitializedError
from quizstreak.services import catalog, ledger, paused, streak
from quizstreak.store.backend import StorageBackend
from quizstreak.store.persistence import deserialize_state, serialize_state
from quizstreak.store.scheduler import ScheduledTask, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_STORAGE_KEY = "quiz_app_data_v1"
DEFAULT_SAVE_DELAY = 0.5


class QuizStore:
    """
    Single owner of quizzes, runs, paused runs, settings, streak and diamonds.

    Lifecycle: `init()` loads once, every operation goes through `mutate()`,
    which notifies subscribers and schedules a debounced save, and `flush()`
    writes any pending state immediately.
    """

    def __init__(
        self,
        storage: StorageBackend,
        scheduler: Scheduler | None = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        save_delay: float = DEFAULT_SAVE_DELAY,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the store.

        Args:
            storage: Durable key/value backend
            scheduler: Runs the debounced save; threading timers by default
            storage_key: Key the whole document is stored under
            save_delay: Debounce window in seconds
            clock: Source of the current local time
        """
        self.storage = storage
        self.scheduler = scheduler or ThreadingScheduler()
        self.storage_key = storage_key
        self.save_delay = save_delay
        self.clock = clock

        self._state: StoreState | None = None
        self._pending_save: ScheduledTask | None = None
        self._dirty = False
        self._version = 0
        self._written_version = 0
        self._write_lock = threading.Lock()
        self._subscribers: list[Callable[[StoreState], None]] = []

    # Lifecycle

    @property
    def is_initialized(self) -> bool:
        return self._state is not None

    def load(self) -> StoreState:
        """
        Read the persisted document.

        Never raises: a missing document gives defaults, and unreadable or
        corrupt data is logged and also gives defaults.
        """
        try:
            raw = self.storage.get_item(self.storage_key)
        except Exception as e:
            logger.error("Failed to load data, starting from defaults: %s", e)
            return StoreState()
        return deserialize_state(raw)

    def init(self) -> StoreState:
        """Load the state once and settle any streak gap since the last visit."""
        if self._state is not None:
            logger.warning("Store already initialized, ignoring init()")
            return self._state

        self._state = self.load()
        logger.info(
            "Loaded %d quizzes, %d runs, %d paused runs",
            len(self._state.quizzes),
            len(self._state.runs),
            len(self._state.paused_runs),
        )

        if streak.check_gap(self._state.streak, self.today()):
            self._changed()
        return self._state

    def read(self) -> StoreState:
        """Current in-memory state."""
        return self._require_state()

    def subscribe(self, callback: Callable[[StoreState], None]) -> Callable[[], None]:
        """
        Register a callback run after every successful mutation.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def mutate(self, fn: Callable[[StoreState], T]) -> T:
        """
        Apply a mutation to the state.

        A returned failed OperationResult means nothing changed, so no save is
        scheduled and subscribers are not notified.
        """
        state = self._require_state()
        result = fn(state)
        if isinstance(result, OperationResult) and not result.ok:
            logger.debug("Mutation rejected: %s", result.message)
            return result
        self._changed()
        return result

    def flush(self) -> None:
        """Cancel the pending debounce and write the current state now."""
        self._cancel_pending_save()
        if self._state is not None and self._dirty:
            self._write(serialize_state(self._state), self._version)

    def close(self) -> None:
        self.flush()

    def today(self) -> date:
        """Local calendar day according to the store's clock."""
        return self.clock().date()

    # Persistence internals

    def _require_state(self) -> StoreState:
        if self._state is None:
            raise StoreNotInitializedError("QuizStore.init() must be called first")
        return self._state

    def _changed(self) -> None:
        for callback in list(self._subscribers):
            callback(self._state)
        self._schedule_save()

    def _schedule_save(self) -> None:
        # Snapshot now so the eventual write carries the state of this mutation
        snapshot = serialize_state(self._state)
        self._version += 1
        version = self._version
        self._dirty = True
        self._cancel_pending_save()
        self._pending_save = self.scheduler.call_later(
            self.save_delay, lambda: self._write(snapshot, version)
        )

    def _cancel_pending_save(self) -> None:
        if self._pending_save is not None:
            self._pending_save.cancel()
            self._pending_save = None

    def _write(self, payload: str, version: int) -> None:
        # A timer already running cannot be cancelled; never let it overwrite newer state
        with self._write_lock:
            if version < self._written_version:
                logger.debug("Skipping stale save of version %d", version)
                return
            try:
                self.storage.set_item(self.storage_key, payload)
            except Exception as e:
                logger.error("Failed to save data: %s", e)
                return
            self._written_version = version
            if version == self._version:
                self._dirty = False
        logger.debug("Saved state version %d (%d bytes)", version, len(payload))

    # Catalog

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        return catalog.get_quiz(self.read(), quiz_id)

    def list_quizzes(self) -> list[Quiz]:
        return catalog.list_quizzes(self.read())

    def add_quiz(
        self,
        title: str,
        description: str = "",
        questions: Iterable[Any] | None = None,
    ) -> OperationResult:
        return self.mutate(
            lambda s: catalog.add_quiz(s, title, description, questions, now=self.clock())
        )

    def update_quiz(self, quiz_id: str, **updates: Any) -> OperationResult:
        return self.mutate(
            lambda s: catalog.update_quiz(s, quiz_id, now=self.clock(), **updates)
        )

    def delete_quiz(self, quiz_id: str) -> OperationResult:
        return self.mutate(lambda s: catalog.delete_quiz(s, quiz_id))

    def add_question(
        self,
        quiz_id: str,
        text: str,
        answers: Iterable[Any],
        images: list[str] | None = None,
    ) -> OperationResult:
        return self.mutate(
            lambda s: catalog.add_question(s, quiz_id, text, answers, images, now=self.clock())
        )

    def update_question(self, quiz_id: str, question_id: str, **updates: Any) -> OperationResult:
        return self.mutate(
            lambda s: catalog.update_question(
                s, quiz_id, question_id, now=self.clock(), **updates
            )
        )

    def delete_question(self, quiz_id: str, question_id: str) -> OperationResult:
        return self.mutate(
            lambda s: catalog.delete_question(s, quiz_id, question_id, now=self.clock())
        )

    def reorder_questions(self, quiz_id: str, ordered_ids: list[str]) -> OperationResult:
        return self.mutate(
            lambda s: catalog.reorder_questions(s, quiz_id, ordered_ids, now=self.clock())
        )

    # Run ledger

    def add_run(
        self,
        quiz_id: str,
        quiz_title: str,
        score_percentage: float,
        total_questions: int,
        correct_count: int,
        wrong_count: int,
        answers: list[QuizRunAnswer],
        is_incomplete: bool = False,
    ) -> OperationResult:
        return self.mutate(
            lambda s: ledger.add_run(
                s,
                quiz_id,
                quiz_title,
                score_percentage,
                total_questions,
                correct_count,
                wrong_count,
                answers,
                is_incomplete=is_incomplete,
                now=self.clock(),
            )
        )

    def get_run(self, run_id: str) -> QuizRun | None:
        return ledger.get_run(self.read(), run_id)

    def runs_for_quiz(self, quiz_id: str) -> list[QuizRun]:
        return ledger.runs_for_quiz(self.read(), quiz_id)

    # Paused runs

    def save_paused_run(self, record: PausedRun) -> OperationResult:
        return self.mutate(lambda s: paused.save_paused_run(s, record, now=self.clock()))

    def delete_paused_run(self, paused_id: str) -> OperationResult:
        return self.mutate(lambda s: paused.delete_paused_run(s, paused_id))

    def get_paused_run(self, paused_id: str) -> PausedRun | None:
        return paused.get_paused_run(self.read(), paused_id)

    def paused_runs_for_quiz(self, quiz_id: str) -> list[PausedRun]:
        return paused.paused_runs_for_quiz(self.read(), quiz_id)

    # Settings, streak and diamonds

    def update_settings(self, **updates: Any) -> OperationResult:
        def apply(state: StoreState) -> OperationResult:
            unknown = set(updates) - set(Settings.model_fields)
            if unknown:
                return OperationResult.invalid(f"Unknown settings: {', '.join(sorted(unknown))}")
            try:
                state.settings = Settings.model_validate(
                    {**state.settings.model_dump(), **updates}
                )
            except ValidationError as e:
                return OperationResult.invalid(f"Invalid settings: {e.error_count()} error(s)")
            return OperationResult.success(state.settings)

        return self.mutate(apply)

    def update_streak(self) -> OperationResult:
        """Record a completion for today (idempotent within a day)."""

        def apply(state: StoreState) -> OperationResult:
            streak.record_completion(state.streak, self.today())
            return OperationResult.success(state.streak.current_streak)

        return self.mutate(apply)

    def buy_freezer(self) -> OperationResult:
        return self.mutate(streak.buy_freezer)
