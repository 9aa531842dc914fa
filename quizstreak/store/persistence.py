"""Conversion between `StoreState` and the persisted JSON document."""

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from quizstreak.models.quiz import PausedRun, Quiz, QuizRun, Settings, StoreState, StreakData

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def serialize_state(state: StoreState) -> str:
    """Render the state as the JSON document written to storage."""
    return json.dumps(state.to_document(), ensure_ascii=False)


def merge_with_defaults(model_cls: type[ModelT], payload: Any) -> ModelT:
    """
    Overlay a persisted payload onto a model's defaults, one field at a time.

    Unknown keys are ignored and a value that fails validation falls back to
    the default for that field only, so older or newer documents still load.

    Args:
        model_cls: Model to build (all fields must have defaults)
        payload: Whatever was found in storage

    Returns:
        A valid model instance
    """
    defaults = model_cls()
    if not isinstance(payload, dict):
        if payload is not None:
            logger.warning("Ignoring non-object %s payload", model_cls.__name__)
        return defaults

    merged = defaults.model_dump(by_alias=True)
    for name, field in model_cls.model_fields.items():
        key = field.alias or name
        # Accept both the camelCase alias and the Python name
        for candidate in (key, name):
            if candidate not in payload:
                continue
            trial = {**merged, key: payload[candidate]}
            try:
                model_cls.model_validate(trial)
            except ValidationError:
                logger.warning(
                    "Invalid %s.%s in stored data, using default", model_cls.__name__, key
                )
            else:
                merged = trial
            break

    return model_cls.model_validate(merged)


def _load_items(model_cls: type[ModelT], items: Any, label: str) -> list[ModelT]:
    """Validate each stored entity on its own, dropping the ones that are broken."""
    if not isinstance(items, list):
        if items is not None:
            logger.warning("Stored %s is not a list, ignoring it", label)
        return []

    loaded = []
    for i, item in enumerate(items):
        try:
            loaded.append(model_cls.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping invalid %s entry %d: %s", label, i, e.error_count())
    return loaded


def deserialize_state(raw: str | None) -> StoreState:
    """
    Rebuild the state from a stored JSON document.

    Args:
        raw: The stored string, or None when nothing was saved yet

    Returns:
        The loaded state; defaults when the document is missing or unreadable
    """
    if raw is None:
        return StoreState()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error("Stored state is not valid JSON, starting from defaults: %s", e)
        return StoreState()

    if not isinstance(data, dict):
        logger.error("Stored state is not a JSON object, starting from defaults")
        return StoreState()

    diamonds = data.get("diamonds", 0.0)
    if not isinstance(diamonds, (int, float)) or isinstance(diamonds, bool) or diamonds < 0:
        logger.warning("Invalid diamonds balance %r, resetting to 0", diamonds)
        diamonds = 0.0

    return StoreState(
        quizzes=_load_items(Quiz, data.get("quizzes"), "quiz"),
        runs=_load_items(QuizRun, data.get("runs"), "run"),
        paused_runs=_load_items(PausedRun, data.get("pausedRuns"), "paused run"),
        settings=merge_with_defaults(Settings, data.get("settings")),
        streak=merge_with_defaults(StreakData, data.get("streak")),
        diamonds=float(diamonds),
    )
