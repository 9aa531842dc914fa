"""Operations on the store state: catalog, run ledger, paused runs and streaks."""

from . import catalog, ledger, paused, streak

__all__ = ["catalog", "ledger", "paused", "streak"]
