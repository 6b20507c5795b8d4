"""Exceptions raised by the ChoreQuest core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .rewards import RewardBundle

__all__ = [
    "AchievementNotFound",
    "CharacterNotFound",
    "ChoreQuestError",
    "InvalidInput",
    "NotFoundError",
    "RewardLogError",
    "TaskAlreadyCompleted",
    "TaskNotFound",
]


class ChoreQuestError(RuntimeError):
    """Base error for failures raised by the core services."""


class NotFoundError(ChoreQuestError):
    """Raised when a referenced member, task or achievement does not exist."""


class CharacterNotFound(NotFoundError):
    """Raised when no character is stored for a user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Character not found for user '{user_id}'")
        self.user_id = user_id


class TaskNotFound(NotFoundError):
    """Raised when a task id is unknown to the task store."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task '{task_id}' not found")
        self.task_id = task_id


class AchievementNotFound(NotFoundError):
    """Raised when an achievement template cannot be resolved."""


class InvalidInput(ValueError):
    """Raised for unknown table keys and malformed arguments."""


class TaskAlreadyCompleted(InvalidInput):
    """Raised when completing a task that was already completed."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task '{task_id}' has already been completed")
        self.task_id = task_id


class RewardLogError(ChoreQuestError):
    """Raised when a granted reward could not be written to the audit log.

    The reward itself has already been applied; ``bundle`` carries it so the
    caller can still report it.
    """

    def __init__(self, message: str, *, bundle: "RewardBundle") -> None:
        super().__init__(message)
        self.bundle = bundle
