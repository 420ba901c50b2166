"""Routing resolver: decides which project group a task belongs in.

The resolver is pure. Given a task snapshot and the tracked directory
members it returns either NoOp or a Patch describing the exact fields to
write. Two marker fields stored on the task itself let it tell a relevant
change (new responsible user, group moved by hand) from the task system
re-delivering events for unrelated edits:

- group marker: the group this router last wrote (or last observed)
- responsible marker: the responsible user at that write

Decision order:
    1. Forced flag set -> forced group, department lookup skipped
    2. Otherwise the responsible user's department picks the group,
       highest-priority route first
    3. Idempotency:
       a. same responsible as last time -> only resync the group marker if
          the group was moved out-of-band, else NoOp
       b. marker == current group == target -> NoOp
       c. full patch (group + both markers)
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from .errors import UnroutableTask
from .models import DirectoryMember, TaskSnapshot
from .routing_config import GROUP_FIELD, RoutingConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoOp:
    """Nothing to write; the task is already where it belongs."""

    reason: str


@dataclass(frozen=True)
class Patch:
    """Fields to write to the task.

    Attributes:
        fields: Field code -> value, sent as the update payload
        target_group_id: Group the task should end up in
        reason: Short description of why the patch was produced
    """

    fields: dict = field(default_factory=dict)
    target_group_id: Optional[int] = None
    reason: str = ""

    @property
    def moves_task(self) -> bool:
        return GROUP_FIELD in self.fields


RoutingDecision = Union[NoOp, Patch]


class RoutingResolver:
    """Resolve task snapshots against an immutable routing config."""

    def __init__(self, config: RoutingConfig):
        self.config = config

    def resolve(
        self, snapshot: TaskSnapshot, members: Iterable[DirectoryMember]
    ) -> RoutingDecision:
        """Decide what, if anything, to write back to the task.

        Args:
            snapshot: Fresh task snapshot
            members: Directory members of the tracked departments

        Returns:
            NoOp or Patch

        Raises:
            UnroutableTask: If no forced flag is set and the responsible user
                is not in a routed department, or the markers are ambiguous
        """
        if snapshot.forced_routing:
            return self._resolve_forced(snapshot)

        member = self._find_member(snapshot, members)
        target = self.target_group_for(member)
        if target is None:
            raise UnroutableTask(
                f"User {member.id} - {member.display_name} is not in a routed department",
                operation="resolve",
                task_id=snapshot.id,
            )

        return self._reconcile(snapshot, member.id, target)

    def target_group_for(self, member: DirectoryMember) -> Optional[int]:
        """Map department membership to a group, highest-priority route first."""
        tracked = member.unit_memberships & self.config.unit_ids
        for route in self.config.routes:
            if route.unit_id in tracked:
                return route.group_id
        return None

    def _resolve_forced(self, snapshot: TaskSnapshot) -> RoutingDecision:
        forced = self.config.forced_group_id
        if snapshot.current_group_id == forced:
            return NoOp(reason=f"forced task already in group {forced}")
        return Patch(
            fields={GROUP_FIELD: forced},
            target_group_id=forced,
            reason="forced routing",
        )

    def _find_member(
        self, snapshot: TaskSnapshot, members: Iterable[DirectoryMember]
    ) -> DirectoryMember:
        responsible = snapshot.responsible_member_id
        if responsible is not None:
            for member in members:
                if member.id == responsible:
                    return member
        raise UnroutableTask(
            f"No user in allowed departments - {responsible}",
            operation="resolve",
            task_id=snapshot.id,
        )

    def _reconcile(
        self, snapshot: TaskSnapshot, responsible: int, target: int
    ) -> RoutingDecision:
        current = snapshot.current_group_id
        group_marker = snapshot.previous_group_marker
        config = self.config

        # a. Same responsible user as at the last write
        if snapshot.previous_responsible_marker == responsible:
            if group_marker != current:
                return Patch(
                    fields={config.group_marker_field: current},
                    target_group_id=current,
                    reason="group changed out-of-band, resyncing marker",
                )
            return NoOp(reason="responsible unchanged since last write")

        if group_marker is not None and config.get_group(group_marker) is None:
            raise UnroutableTask(
                f"Group marker {group_marker} references an unconfigured group",
                operation="resolve",
                task_id=snapshot.id,
            )

        # b. Already placed and markers consistent
        if group_marker is not None and group_marker == current == target:
            return NoOp(reason=f"already in group {target}")

        # c. Full move
        return Patch(
            fields={
                GROUP_FIELD: target,
                config.group_marker_field: target,
                config.responsible_marker_field: responsible,
            },
            target_group_id=target,
            reason="routed by department",
        )
