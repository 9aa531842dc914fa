"""Streak accountant: daily completions, gap recovery with freezers, purchases."""

import logging
from datetime import date, timedelta

from quizstreak.models.quiz import FREEZER_COST, MAX_FREEZERS, DayStatus, StoreState, StreakData
from quizstreak.models.results import FailureKind, OperationResult

logger = logging.getLogger(__name__)


def day_key(day: date) -> str:
    """Calendar-day key used in `StreakData` (YYYY-MM-DD)."""
    return day.isoformat()


def record_completion(streak: StreakData, today: date) -> bool:
    """
    Count a finished quiz towards today's streak.

    Completing again on the same day changes nothing.

    Args:
        streak: Streak data, updated in place
        today: Local calendar day of the completion

    Returns:
        True if the streak changed
    """
    today_key = day_key(today)
    if streak.last_completed_date == today_key:
        return False

    if streak.last_completed_date == day_key(today - timedelta(days=1)):
        streak.current_streak += 1
    else:
        streak.current_streak = 1

    streak.last_completed_date = today_key
    streak.history[today_key] = DayStatus.COMPLETED
    logger.info("Streak is now %d day(s)", streak.current_streak)
    return True


def missed_days(streak: StreakData, today: date) -> int:
    """Number of full calendar days strictly between the last completion and today."""
    last = streak.last_completed_day
    if last is None:
        return 0
    return max((today - last).days - 1, 0)


def check_gap(streak: StreakData, today: date) -> bool:
    """
    Settle days missed since the last completion.

    Every missed day is covered by one freezer; when there are not enough
    freezers for the whole gap the streak is lost and no freezer is spent.

    Args:
        streak: Streak data, updated in place
        today: Local calendar day the app was opened on

    Returns:
        True if the streak changed
    """
    last = streak.last_completed_day
    gap = missed_days(streak, today)
    if last is None or gap == 0:
        return False

    if streak.freezers >= gap:
        for offset in range(1, gap + 1):
            streak.history[day_key(last + timedelta(days=offset))] = DayStatus.FREEZED
        streak.freezers -= gap
        streak.last_completed_date = day_key(today - timedelta(days=1))
        logger.info("Used %d freezer(s) to keep a %d day streak", gap, streak.current_streak)
    else:
        logger.info(
            "Streak of %d lost after %d missed day(s) with %d freezer(s)",
            streak.current_streak,
            gap,
            streak.freezers,
        )
        streak.current_streak = 0
    return True


def buy_freezer(state: StoreState) -> OperationResult:
    """Trade diamonds for one freezer, up to the inventory cap."""
    if state.streak.freezers >= MAX_FREEZERS:
        return OperationResult.fail(
            FailureKind.FREEZER_LIMIT, f"You already have {MAX_FREEZERS} freezers"
        )
    if state.diamonds < FREEZER_COST:
        return OperationResult.fail(
            FailureKind.INSUFFICIENT_DIAMONDS,
            f"A freezer costs {FREEZER_COST:g} diamonds, you have {state.diamonds:.1f}",
        )

    state.diamonds -= FREEZER_COST
    state.streak.freezers += 1
    return OperationResult.success(state.streak.freezers)
