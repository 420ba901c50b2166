"""Pydantic models for directory members and task snapshots."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .routing_config import RoutingConfig


def normalize_flag(value: Any) -> bool:
    """Map the task system's truthy encodings to a bool.

    True, "Y", "1" and 1 are truthy; anything else (including "N", "0",
    None and empty strings) is not.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip() in ("Y", "1")
    return False


def camelize_field(code: str) -> str:
    """Convert an upper-snake field code to the camelCase key used in task reads.

    >>> camelize_field("UF_AUTO_903852263140")
    'ufAuto903852263140'
    """
    head, *rest = code.lower().split("_")
    return head + "".join(part.capitalize() for part in rest)


def _pick(data: dict, code: str) -> Any:
    """Read a task field by camelCase key, falling back to the raw code."""
    camel = camelize_field(code)
    if camel in data:
        return data[camel]
    return data.get(code)


class DirectoryMember(BaseModel):
    """A person in one of the tracked departments."""

    id: int
    display_name: str = ""
    unit_memberships: frozenset[int] = frozenset()

    model_config = ConfigDict(frozen=True)

    @field_validator("unit_memberships", mode="before")
    @classmethod
    def _coerce_units(cls, value):
        if value is None or value == "":
            return frozenset()
        if isinstance(value, (int, str)):
            value = [value]
        return frozenset(int(v) for v in value)

    @classmethod
    def from_upstream(cls, item: dict) -> "DirectoryMember":
        """Build from a `user.get` result row."""
        name = " ".join(
            part for part in (item.get("NAME"), item.get("LAST_NAME")) if part
        )
        return cls(
            id=item["ID"],
            display_name=name,
            unit_memberships=item.get("UF_DEPARTMENT"),
        )


class TaskSnapshot(BaseModel):
    """Current state of a task as read from the task system.

    Empty marker values ("", None, 0) are normalized to None, and the
    forced-routing flag to a bool, once here at ingestion.
    """

    id: int
    title: str = ""
    responsible_member_id: Optional[int] = None
    current_group_id: int = 0
    previous_group_marker: Optional[int] = None
    previous_responsible_marker: Optional[int] = None
    forced_routing: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator(
        "responsible_member_id",
        "previous_group_marker",
        "previous_responsible_marker",
        mode="before",
    )
    @classmethod
    def _empty_to_none(cls, value):
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        value = int(value)
        return value or None

    @field_validator("current_group_id", mode="before")
    @classmethod
    def _group_or_zero(cls, value):
        if value is None or value == "":
            return 0
        return int(value)

    @field_validator("forced_routing", mode="before")
    @classmethod
    def _normalize_forced(cls, value):
        return normalize_flag(value)

    @classmethod
    def from_upstream(cls, task: dict, config: RoutingConfig) -> "TaskSnapshot":
        """Build from the `task` object of a `tasks.task.get` response."""
        return cls(
            id=_pick(task, "ID"),
            title=_pick(task, "TITLE") or "",
            responsible_member_id=_pick(task, "RESPONSIBLE_ID"),
            current_group_id=_pick(task, "GROUP_ID"),
            previous_group_marker=_pick(task, config.group_marker_field),
            previous_responsible_marker=_pick(task, config.responsible_marker_field),
            forced_routing=_pick(task, config.forced_flag_field),
        )
