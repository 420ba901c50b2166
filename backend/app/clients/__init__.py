"""Clients for the task system's REST API."""

from .base import UpstreamClient
from .directory import DirectoryClient
from .tasks import TaskGateway

__all__ = ["UpstreamClient", "DirectoryClient", "TaskGateway"]
