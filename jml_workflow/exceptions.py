"""
Exceptions raised by the JML Workflow Engine.
"""


class JMLError(Exception):
    """Base class for engine errors."""


class UserNotFoundError(JMLError, LookupError):
    """The subject user of a lifecycle event does not exist."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class InvalidTransitionError(JMLError):
    """A task or event was moved to a status its current status does not allow."""


class TaskExecutionError(JMLError):
    """A task handler could not perform its side effect."""

    def __init__(self, task_type: str, message: str):
        self.task_type = task_type
        super().__init__(message)
