"""Task gateway: read a task snapshot, write fields back."""

import logging

from pydantic import ValidationError

from ..errors import TaskNotFound, UpdateRejected, UpstreamUnavailable
from ..models import TaskSnapshot
from ..routing_config import RoutingConfig
from .base import UpstreamClient, error_description

logger = logging.getLogger(__name__)

GET_METHOD = "tasks.task.get"
UPDATE_METHOD = "tasks.task.update"


class TaskGateway:
    """Request/response adapter for tasks. No retries."""

    def __init__(self, upstream: UpstreamClient, config: RoutingConfig):
        self.upstream = upstream
        self.config = config

    def _select_fields(self) -> list[str]:
        return [
            "ID",
            "TITLE",
            "RESPONSIBLE_ID",
            "GROUP_ID",
            self.config.group_marker_field,
            self.config.responsible_marker_field,
            self.config.forced_flag_field,
        ]

    async def get_task(self, task_id: int) -> TaskSnapshot:
        """Fetch the current snapshot of a task.

        Raises:
            TaskNotFound: If the lookup returns no task
            UpstreamUnavailable: On transport failure or a malformed task
        """
        params = [("taskId", task_id)]
        params += [("select[]", name) for name in self._select_fields()]

        data = await self.upstream.call(GET_METHOD, params=params, task_id=task_id)

        result = data.get("result")
        task = result.get("task") if isinstance(result, dict) else None
        if not task:
            reason = error_description(data) or "empty result"
            raise TaskNotFound(
                f"Task with ID {task_id} not found ({reason})",
                operation=GET_METHOD,
                task_id=task_id,
            )

        try:
            return TaskSnapshot.from_upstream(task, self.config)
        except ValidationError as e:
            raise UpstreamUnavailable(
                f"Unexpected task payload: {e}", operation=GET_METHOD, task_id=task_id
            ) from e

    async def update_task(self, task_id: int, fields: dict) -> dict:
        """Apply a field-level update.

        Returns:
            The raw upstream response body

        Raises:
            UpdateRejected: If the upstream reports an error
            UpstreamUnavailable: On transport failure
        """
        data = await self.upstream.call(
            UPDATE_METHOD,
            params={"taskId": task_id},
            json={"fields": fields},
            task_id=task_id,
        )

        error = error_description(data)
        if error:
            raise UpdateRejected(error, operation=UPDATE_METHOD, task_id=task_id)

        logger.debug(f"Updated task {task_id}: {fields}")
        return data
