"""Composition root: builds the store from application settings."""

from quizstreak.config.settings import AppSettings, get_app_settings
from quizstreak.store import JsonFileStorage, QuizStore, ThreadingScheduler


def build_store(settings: AppSettings | None = None) -> QuizStore:
    """
    Create and initialize the store backed by the configured data directory.

    Args:
        settings: Application settings (cached environment settings by default)

    Returns:
        An initialized QuizStore
    """
    settings = settings or get_app_settings()
    store = QuizStore(
        storage=JsonFileStorage(settings.data_dir),
        scheduler=ThreadingScheduler(),
        storage_key=settings.storage_key,
        save_delay=settings.save_debounce_seconds,
    )
    store.init()
    return store
