"""Tests for the store lifecycle and debounced persistence."""

import json

import pytest

from quizstreak.models.results import FailureKind, StoreNotInitializedError
from quizstreak.store import ManualScheduler, MemoryStorage, QuizStore
from quizstreak.store.store import DEFAULT_STORAGE_KEY


class BrokenStorage(MemoryStorage):
    """Storage whose reads or writes fail."""

    def __init__(self, fail_reads=False, fail_writes=False):
        super().__init__()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get_item(self, key):
        if self.fail_reads:
            raise OSError("disk unavailable")
        return super().get_item(key)

    def set_item(self, key, value):
        if self.fail_writes:
            raise OSError("disk full")
        super().set_item(key, value)


class TestLifecycle:
    """Test init and read."""

    def test_use_before_init_raises(self, storage, scheduler):
        quiz_store = QuizStore(storage, scheduler=scheduler)

        assert not quiz_store.is_initialized
        with pytest.raises(StoreNotInitializedError):
            quiz_store.read()
        with pytest.raises(StoreNotInitializedError):
            quiz_store.add_quiz("Too early")

    def test_fresh_store_has_defaults(self, store):
        state = store.read()

        assert store.is_initialized
        assert state.quizzes == []
        assert state.diamonds == 0.0
        assert state.streak.current_streak == 0

    def test_corrupt_document_loads_defaults(self, scheduler, clock):
        storage = MemoryStorage({DEFAULT_STORAGE_KEY: "{{{ definitely not json"})
        quiz_store = QuizStore(storage, scheduler=scheduler, clock=clock)

        state = quiz_store.init()

        assert state.quizzes == []

    def test_malformed_streak_date_does_not_block_init(self, scheduler, clock):
        document = {"streak": {"currentStreak": 4, "lastCompletedDate": "not-a-date"}}
        storage = MemoryStorage({DEFAULT_STORAGE_KEY: json.dumps(document)})
        quiz_store = QuizStore(storage, scheduler=scheduler, clock=clock)

        state = quiz_store.init()

        assert state.streak.current_streak == 4
        assert state.streak.last_completed_date is None

    def test_read_failure_loads_defaults(self, scheduler, clock):
        quiz_store = QuizStore(BrokenStorage(fail_reads=True), scheduler=scheduler, clock=clock)

        assert quiz_store.init().quizzes == []

    def test_init_twice_keeps_state(self, store):
        store.add_quiz("Kept")
        store.init()

        assert [q.title for q in store.list_quizzes()] == ["Kept"]

    def test_persisted_state_is_reloaded(self, storage, scheduler, clock, store):
        store.add_quiz("Persisted")
        store.flush()

        reopened = QuizStore(storage, scheduler=ManualScheduler(), clock=clock)
        reopened.init()

        assert [q.title for q in reopened.list_quizzes()] == ["Persisted"]

    def test_custom_storage_key(self, storage, scheduler, clock):
        quiz_store = QuizStore(storage, scheduler=scheduler, storage_key="other", clock=clock)
        quiz_store.init()
        quiz_store.add_quiz("Elsewhere")
        quiz_store.flush()

        assert "other" in storage.items
        assert DEFAULT_STORAGE_KEY not in storage.items


class TestDebouncedSave:
    """Test write coalescing."""

    def test_nothing_written_before_delay(self, store, storage, scheduler):
        store.add_quiz("Draft")
        scheduler.advance(0.4)

        assert storage.write_count == 0

    def test_burst_of_mutations_coalesces_into_one_write(self, store, storage, scheduler):
        for i in range(5):
            store.add_quiz(f"Quiz {i}")
            scheduler.advance(0.1)

        scheduler.advance(0.5)

        assert storage.write_count == 1
        titles = {q["title"] for q in storage.get_json(DEFAULT_STORAGE_KEY)["quizzes"]}
        assert titles == {f"Quiz {i}" for i in range(5)}

    def test_last_state_wins(self, store, storage, scheduler):
        quiz = store.add_quiz("First title").value
        store.update_quiz(quiz.id, title="Final title")
        scheduler.advance(1)

        stored = storage.get_json(DEFAULT_STORAGE_KEY)
        assert stored["quizzes"][0]["title"] == "Final title"

    def test_separate_windows_write_separately(self, store, storage, scheduler):
        store.add_quiz("One")
        scheduler.advance(1)
        store.add_quiz("Two")
        scheduler.advance(1)

        assert storage.write_count == 2

    def test_failed_mutation_schedules_nothing(self, store, storage, scheduler):
        result = store.update_quiz("missing", title="Nope")
        scheduler.advance(1)

        assert result.failure == FailureKind.NOT_FOUND
        assert scheduler.pending == []
        assert storage.write_count == 0

    def test_flush_writes_immediately_and_cancels_timer(self, store, storage, scheduler):
        store.add_quiz("Now")
        store.flush()

        assert storage.write_count == 1
        assert scheduler.pending == []
        scheduler.advance(1)
        assert storage.write_count == 1

    def test_flush_without_changes_does_not_write(self, store, storage):
        store.flush()
        assert storage.write_count == 0

    def test_write_failure_is_swallowed(self, scheduler, clock):
        storage = BrokenStorage(fail_writes=True)
        quiz_store = QuizStore(storage, scheduler=scheduler, clock=clock)
        quiz_store.init()

        result = quiz_store.add_quiz("Survives")
        scheduler.advance(1)

        assert result.ok
        assert quiz_store.list_quizzes()[0].title == "Survives"

    def test_failed_write_is_retried_on_flush(self, scheduler, clock):
        storage = BrokenStorage(fail_writes=True)
        quiz_store = QuizStore(storage, scheduler=scheduler, clock=clock)
        quiz_store.init()
        quiz_store.add_quiz("Retry me")
        scheduler.advance(1)

        storage.fail_writes = False
        quiz_store.flush()

        assert storage.write_count == 1
        assert json.loads(storage.items[DEFAULT_STORAGE_KEY])["quizzes"][0]["title"] == "Retry me"

    def test_stale_snapshot_never_overwrites_newer_state(self, store, storage, scheduler):
        quiz = store.add_quiz("Old").value
        stale_save = scheduler.pending[-1].callback
        store.update_quiz(quiz.id, title="New")
        store.flush()

        stale_save()

        assert storage.write_count == 1
        assert storage.get_json(DEFAULT_STORAGE_KEY)["quizzes"][0]["title"] == "New"


class TestSubscribe:
    """Test change notifications."""

    def test_subscriber_called_after_mutation(self, store):
        seen = []
        store.subscribe(lambda state: seen.append(len(state.quizzes)))

        store.add_quiz("A")
        store.add_quiz("B")

        assert seen == [1, 2]

    def test_unsubscribe(self, store):
        seen = []
        unsubscribe = store.subscribe(lambda state: seen.append(state))
        unsubscribe()

        store.add_quiz("A")

        assert seen == []

    def test_failed_mutation_does_not_notify(self, store):
        seen = []
        store.subscribe(lambda state: seen.append(state))

        store.add_quiz("   ")

        assert seen == []


class TestSettings:
    """Test settings updates through the store."""

    def test_update_merges_fields(self, store):
        result = store.update_settings(default_shuffle=True, auto_advance_delay=3)

        assert result.ok
        settings = store.read().settings
        assert settings.default_shuffle is True
        assert settings.auto_advance_delay == 3
        assert settings.manual_confirmation is False

    def test_unknown_setting_rejected(self, store):
        result = store.update_settings(theme="dark")

        assert result.failure == FailureKind.VALIDATION

    def test_invalid_value_rejected(self, store):
        result = store.update_settings(auto_advance_delay=-1)

        assert result.failure == FailureKind.VALIDATION
        assert store.read().settings.auto_advance_delay == 1.5
