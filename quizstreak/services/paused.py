"""Paused session records: upsert, lookup and progress."""

import logging
from datetime import datetime

from quizstreak.models.quiz import PausedRun, Quiz, StoreState
from quizstreak.models.results import OperationResult

logger = logging.getLogger(__name__)


def save_paused_run(
    state: StoreState, paused: PausedRun, now: datetime | None = None
) -> OperationResult:
    """
    Insert or replace a paused run by id.

    A session that was itself resumed keeps its id, so repeated pauses never
    accumulate duplicate records.

    Returns:
        OperationResult whose value is the paused run id
    """
    record = paused.model_copy(update={"timestamp": now or datetime.now()}, deep=True)
    for index, existing in enumerate(state.paused_runs):
        if existing.id == record.id:
            state.paused_runs[index] = record
            logger.debug("Updated paused run %s", record.id)
            return OperationResult.success(record.id)

    state.paused_runs.insert(0, record)
    logger.debug("Created paused run %s", record.id)
    return OperationResult.success(record.id)


def delete_paused_run(state: StoreState, paused_id: str) -> OperationResult:
    paused = get_paused_run(state, paused_id)
    if paused is None:
        return OperationResult.not_found("Paused run", paused_id)
    state.paused_runs = [p for p in state.paused_runs if p.id != paused_id]
    return OperationResult.success(paused)


def get_paused_run(state: StoreState, paused_id: str) -> PausedRun | None:
    for paused in state.paused_runs:
        if paused.id == paused_id:
            return paused
    return None


def paused_runs_for_quiz(state: StoreState, quiz_id: str) -> list[PausedRun]:
    return [p for p in state.paused_runs if p.quiz_id == quiz_id]


def paused_progress(paused: PausedRun, quiz: Quiz | None) -> int:
    """Percentage of the session already answered, rounded to an integer."""
    if paused.question_ids:
        total = len(paused.question_ids)
    elif quiz is not None and quiz.questions:
        total = len(quiz.questions)
    else:
        total = 1
    return min(100, round(len(paused.answers) / total * 100))
