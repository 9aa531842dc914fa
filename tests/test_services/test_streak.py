"""Tests for the streak accountant."""

from datetime import date, timedelta

import pytest

from quizstreak.models.quiz import FREEZER_COST, MAX_FREEZERS, DayStatus, StoreState, StreakData
from quizstreak.models.results import FailureKind
from quizstreak.services import streak as streaks
from quizstreak.store import ManualScheduler, MemoryStorage, QuizStore
from quizstreak.store.persistence import serialize_state

TODAY = date(2024, 3, 10)


def days_ago(n: int) -> str:
    return (TODAY - timedelta(days=n)).isoformat()


class TestRecordCompletion:
    """Test counting completions."""

    def test_first_completion_starts_streak(self):
        data = StreakData()

        assert streaks.record_completion(data, TODAY)
        assert data.current_streak == 1
        assert data.last_completed_date == "2024-03-10"
        assert data.history == {"2024-03-10": DayStatus.COMPLETED}

    def test_consecutive_day_extends_streak(self):
        data = StreakData(current_streak=4, last_completed_date=days_ago(1))

        streaks.record_completion(data, TODAY)

        assert data.current_streak == 5

    def test_same_day_is_idempotent(self):
        data = StreakData(current_streak=4, last_completed_date=days_ago(0))

        assert not streaks.record_completion(data, TODAY)
        assert data.current_streak == 4

    def test_after_gap_restarts_at_one(self):
        data = StreakData(current_streak=9, last_completed_date=days_ago(3))

        streaks.record_completion(data, TODAY)

        assert data.current_streak == 1


class TestCheckGap:
    """Test gap recovery on startup."""

    def test_enough_freezers_cover_every_missed_day(self):
        data = StreakData(current_streak=6, last_completed_date=days_ago(4), freezers=5)

        assert streaks.check_gap(data, TODAY)

        assert data.freezers == 2
        assert data.current_streak == 6
        assert data.last_completed_date == days_ago(1)
        frozen = [day for day, status in data.history.items() if status == DayStatus.FREEZED]
        assert sorted(frozen) == [days_ago(3), days_ago(2), days_ago(1)]

    def test_too_few_freezers_lose_the_streak(self):
        data = StreakData(current_streak=6, last_completed_date=days_ago(4), freezers=1)

        assert streaks.check_gap(data, TODAY)

        assert data.current_streak == 0
        assert data.freezers == 1
        assert data.last_completed_date == days_ago(4)
        assert data.history == {}

    def test_exact_freezer_count_is_enough(self):
        data = StreakData(current_streak=2, last_completed_date=days_ago(3), freezers=2)

        streaks.check_gap(data, TODAY)

        assert data.freezers == 0
        assert data.current_streak == 2

    @pytest.mark.parametrize("last", [None, days_ago(0), days_ago(1), "2024-03-12"])
    def test_no_gap_means_no_action(self, last):
        data = StreakData(current_streak=3, last_completed_date=last, freezers=3)

        assert not streaks.check_gap(data, TODAY)
        assert data.freezers == 3
        assert data.current_streak == 3

    def test_zero_streak_still_spends_freezers(self):
        data = StreakData(last_completed_date=days_ago(4), freezers=5)

        assert streaks.check_gap(data, TODAY)

        assert data.freezers == 2
        assert data.current_streak == 0
        assert data.last_completed_date == days_ago(1)
        frozen = [day for day, status in data.history.items() if status == DayStatus.FREEZED]
        assert len(frozen) == 3

    def test_completion_after_freeze_continues_streak(self):
        data = StreakData(current_streak=6, last_completed_date=days_ago(2), freezers=1)

        streaks.check_gap(data, TODAY)
        streaks.record_completion(data, TODAY)

        assert data.current_streak == 7

    def test_missed_days(self):
        assert streaks.missed_days(StreakData(last_completed_date=days_ago(4)), TODAY) == 3
        assert streaks.missed_days(StreakData(last_completed_date=days_ago(1)), TODAY) == 0
        assert streaks.missed_days(StreakData(), TODAY) == 0


class TestStoreInitGapCheck:
    """Test that the store settles gaps when it loads."""

    def test_init_consumes_freezers_and_schedules_save(self, clock):
        state = StoreState(
            streak=StreakData(current_streak=6, last_completed_date="2024-03-06", freezers=5)
        )
        storage = MemoryStorage({"quiz_app_data_v1": serialize_state(state)})
        scheduler = ManualScheduler()
        quiz_store = QuizStore(storage, scheduler=scheduler, clock=clock)

        quiz_store.init()
        scheduler.advance(1)

        assert quiz_store.read().streak.freezers == 2
        assert storage.get_json("quiz_app_data_v1")["streak"]["freezers"] == 2

    def test_store_update_streak_uses_store_clock(self, store, clock):
        assert store.update_streak().value == 1
        clock.advance(days=1)
        assert store.update_streak().value == 2
        assert store.update_streak().value == 2


class TestBuyFreezer:
    """Test freezer purchases."""

    def test_purchase_debits_diamonds(self):
        state = StoreState(diamonds=150)

        result = streaks.buy_freezer(state)

        assert result.ok
        assert result.value == 1
        assert state.diamonds == 150 - FREEZER_COST
        assert state.streak.freezers == 1

    def test_insufficient_diamonds(self):
        state = StoreState(diamonds=99.5)

        result = streaks.buy_freezer(state)

        assert result.failure == FailureKind.INSUFFICIENT_DIAMONDS
        assert state.diamonds == 99.5
        assert state.streak.freezers == 0

    def test_freezer_cap(self):
        state = StoreState(diamonds=1000, streak=StreakData(freezers=MAX_FREEZERS))

        result = streaks.buy_freezer(state)

        assert result.failure == FailureKind.FREEZER_LIMIT
        assert state.diamonds == 1000

    def test_store_purchase_schedules_save(self, store, scheduler, storage):
        store.mutate(lambda s: setattr(s, "diamonds", 250.0))
        assert store.buy_freezer().ok
        assert store.buy_freezer().ok
        assert store.buy_freezer().failure == FailureKind.INSUFFICIENT_DIAMONDS

        scheduler.advance(1)

        stored = storage.get_json("quiz_app_data_v1")
        assert stored["diamonds"] == 50.0
        assert stored["streak"]["freezers"] == 2
