"""Webhook handling: find the task id, run the resolver, apply the patch."""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .clients import DirectoryClient, TaskGateway
from .errors import TaskRouterError
from .routing import NoOp, Patch, RoutingDecision, RoutingResolver
from .routing_config import RoutingConfig

logger = logging.getLogger(__name__)

TASK_ID_KEY = "ID"
# Task change notifications carry the id under data[FIELDS_AFTER][ID]
NOTIFICATION_PATH = ("data", "FIELDS_AFTER", "ID")


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def _nested(payload: Mapping, path: tuple) -> Any:
    # JSON bodies nest; form bodies arrive flattened as "data[FIELDS_AFTER][ID]"
    flat = path[0] + "".join(f"[{part}]" for part in path[1:])
    if flat in payload:
        return payload[flat]

    node: Any = payload
    for part in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node


def extract_task_id(
    body: Optional[Mapping] = None,
    query: Optional[Mapping] = None,
    path_task_id: Optional[str] = None,
) -> Optional[int]:
    """Find the task id in an inbound event.

    Checked in order, first present wins: top-level body field, nested
    change-notification field, query parameter, route parameter.

    Returns:
        The task id, or None if no location carries a usable one
    """
    body = body or {}
    query = query or {}
    candidates = (
        body.get(TASK_ID_KEY),
        _nested(body, NOTIFICATION_PATH),
        query.get(TASK_ID_KEY),
        path_task_id,
    )
    for value in candidates:
        if _present(value):
            try:
                return int(str(value).strip())
            except ValueError:
                logger.warning(f"Ignoring non-numeric task id {value!r}")
    return None


@dataclass
class RouteOutcome:
    """Result of handling one event.

    Attributes:
        task_id: Task that was processed
        decision: What the resolver decided
        response: Raw upstream update response (None for NoOp)
    """

    task_id: int
    decision: RoutingDecision
    response: Optional[dict] = None

    @property
    def applied(self) -> bool:
        return isinstance(self.decision, Patch)


class TaskRouter:
    """Runs one routing pass for a task: fetch, resolve, apply."""

    def __init__(
        self,
        directory: DirectoryClient,
        gateway: TaskGateway,
        config: RoutingConfig,
    ):
        self.directory = directory
        self.gateway = gateway
        self.config = config
        self.resolver = RoutingResolver(config)

    async def route_task(self, task_id: int) -> RouteOutcome:
        """Route a task into its project group if needed.

        Raises:
            TaskRouterError: Any handled failure (upstream, not found,
                unroutable, rejected update)
        """
        members = await self.directory.fetch_members(self.config.unit_ids)
        snapshot = await self.gateway.get_task(task_id)

        try:
            decision = self.resolver.resolve(snapshot, members)
        except TaskRouterError as e:
            if e.task_id is None:
                e.task_id = task_id
            raise

        if isinstance(decision, NoOp):
            logger.info(f"Task {task_id} - {snapshot.title}: no update ({decision.reason})")
            return RouteOutcome(task_id=task_id, decision=decision)

        response = await self.gateway.update_task(task_id, decision.fields)

        if decision.moves_task:
            logger.info(
                f"Task {task_id} - {snapshot.title} added to group - "
                f"{decision.target_group_id} {self.config.group_name(decision.target_group_id)} "
                f"({decision.reason})"
            )
        else:
            logger.info(f"Task {task_id} - {snapshot.title}: {decision.reason}")
        return RouteOutcome(task_id=task_id, decision=decision, response=response)
