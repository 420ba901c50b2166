"""Pytest configuration and fixtures."""

import pytest

from app.models import DirectoryMember, TaskSnapshot
from app.routing_config import RoutingConfig


@pytest.fixture
def routing_config():
    """Default routing config (production departments and groups)."""
    return RoutingConfig()


@pytest.fixture
def programmer():
    """Member of the programmers department."""
    return DirectoryMember(id=5, display_name="Anna Petrova", unit_memberships={154})


@pytest.fixture
def integrator():
    """Member of the integrators department."""
    return DirectoryMember(id=8, display_name="Oleg Sidorov", unit_memberships={3})


@pytest.fixture
def salesperson():
    """Member of a tracked department with no routed group."""
    return DirectoryMember(id=11, display_name="Irina Volkova", unit_memberships={7})


@pytest.fixture
def members(programmer, integrator, salesperson):
    return [programmer, integrator, salesperson]


@pytest.fixture
def make_snapshot():
    """Factory for task snapshots with sensible defaults."""

    def _make(**overrides):
        values = {
            "id": 42,
            "title": "Fix invoice export",
            "responsible_member_id": 5,
            "current_group_id": 0,
        }
        values.update(overrides)
        return TaskSnapshot(**values)

    return _make


@pytest.fixture
def upstream_task():
    """A `tasks.task.get` task object as returned by the task system."""
    return {
        "id": "42",
        "title": "Fix invoice export",
        "responsibleId": "5",
        "groupId": "0",
        "ufAuto554734207359": None,
        "ufAuto899417333101": None,
        "ufAuto903852263140": "N",
    }
