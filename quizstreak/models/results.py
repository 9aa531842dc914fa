"""Typed outcomes for store operations and the exceptions for misuse."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Why an operation did not happen."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INSUFFICIENT_DIAMONDS = "insufficient_diamonds"
    FREEZER_LIMIT = "freezer_limit"
    SESSION_CONFLICT = "session_conflict"


class OperationResult(BaseModel):
    """Result of a mutation: either a value or a failure the caller can show."""

    model_config = {"arbitrary_types_allowed": True}

    ok: bool = Field(..., description="Whether the mutation happened")
    value: Any = Field(default=None, description="Created/updated entity, if any")
    failure: FailureKind | None = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None, message: str = "") -> "OperationResult":
        """Build a successful result."""
        return cls(ok=True, value=value, message=message)

    @classmethod
    def fail(cls, failure: FailureKind, message: str) -> "OperationResult":
        """Build a failed result."""
        return cls(ok=False, failure=failure, message=message)

    @classmethod
    def not_found(cls, what: str, entity_id: str) -> "OperationResult":
        return cls.fail(FailureKind.NOT_FOUND, f"{what} '{entity_id}' not found")

    @classmethod
    def invalid(cls, message: str) -> "OperationResult":
        return cls.fail(FailureKind.VALIDATION, message)

    def __bool__(self) -> bool:
        return self.ok


class QuizStreakError(Exception):
    """Base class for programming errors (misuse of the API)."""


class StoreNotInitializedError(QuizStreakError):
    """Raised when the store is used before `init()` has loaded its state."""


class InvalidSessionStateError(QuizStreakError):
    """Raised when a session action is not allowed in its current state."""
