"""Error taxonomy for the task router.

Every failure the webhook boundary knows how to handle derives from
TaskRouterError, so the route can catch one type, log the context and answer
with the opaque failure envelope.
"""

from typing import Optional


class TaskRouterError(Exception):
    """Base class for handled task router failures.

    Attributes:
        operation: Name of the operation that failed (e.g. "tasks.task.get")
        task_id: Task being processed, when known
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        task_id: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.task_id = task_id

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"operation={self.operation}")
        if self.task_id is not None:
            parts.append(f"task_id={self.task_id}")
        return " | ".join(parts)


class ConfigError(TaskRouterError):
    """Invalid or missing configuration (key material, routing file)."""


class UpstreamUnavailable(TaskRouterError):
    """Transport or server failure talking to the task system."""


class TaskNotFound(TaskRouterError):
    """The task lookup returned no result."""


class UnroutableTask(TaskRouterError):
    """No forced flag and no tracked department maps the task to a group."""


class UpdateRejected(TaskRouterError):
    """The task system accepted the update request but reported an error."""

    def __init__(
        self,
        description: str,
        operation: Optional[str] = None,
        task_id: Optional[int] = None,
    ):
        super().__init__(f"Update rejected: {description}", operation, task_id)
        self.description = description
