"""Persistent store, its storage backends and the save scheduler."""

from .backend import JsonFileStorage, MemoryStorage, StorageBackend
from .persistence import deserialize_state, merge_with_defaults, serialize_state
from .scheduler import ManualScheduler, Scheduler, ThreadingScheduler
from .store import QuizStore

__all__ = [
    "QuizStore",
    "StorageBackend",
    "JsonFileStorage",
    "MemoryStorage",
    "Scheduler",
    "ThreadingScheduler",
    "ManualScheduler",
    "serialize_state",
    "deserialize_state",
    "merge_with_defaults",
]
