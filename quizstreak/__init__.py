"""quizstreak - quiz authoring, practice sessions and daily streak tracking."""

__version__ = "0.1.0"
