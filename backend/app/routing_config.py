"""Routing configuration: tracked departments, project groups and field codes."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .config import get_settings
from .errors import ConfigError

logger = logging.getLogger(__name__)

GROUP_FIELD = "GROUP_ID"


@dataclass(frozen=True)
class OrganizationalUnit:
    """Allow-listed department."""

    id: int
    name: str
    key: str


@dataclass(frozen=True)
class ProjectGroup:
    """Project group a task can be filed into."""

    id: int
    name: str


@dataclass(frozen=True)
class UnitRoute:
    """Department -> group association. Order in RoutingConfig.routes is priority."""

    unit_id: int
    group_id: int


DEFAULT_UNITS = (
    OrganizationalUnit(id=3, name="Интеграторы", key="integrators"),
    OrganizationalUnit(id=154, name="Отдел программистов", key="programmers"),
    OrganizationalUnit(id=7, name="Отдел продаж", key="sales"),
)

DEFAULT_GROUPS = (
    ProjectGroup(id=148, name="Интеграторы"),
    ProjectGroup(id=156, name="Программисты"),
    ProjectGroup(id=150, name="ОП_Переговоры и встречи"),
)

# Programmers win over integrators for members of both
DEFAULT_ROUTES = (
    UnitRoute(unit_id=154, group_id=156),
    UnitRoute(unit_id=3, group_id=148),
)


@dataclass(frozen=True)
class RoutingConfig:
    """Immutable routing configuration injected into the resolver.

    Attributes:
        units: Allow-listed departments; membership elsewhere is ignored
        groups: Known project groups
        routes: Department -> group associations, highest priority first
        forced_group_id: Group for tasks carrying the forced-routing flag
        group_marker_field: Task field remembering the group last written
        responsible_marker_field: Task field remembering the responsible
            user at the last write
        forced_flag_field: Task field holding the forced-routing flag
    """

    units: tuple = DEFAULT_UNITS
    groups: tuple = DEFAULT_GROUPS
    routes: tuple = DEFAULT_ROUTES
    forced_group_id: int = 150
    group_marker_field: str = "UF_AUTO_554734207359"
    responsible_marker_field: str = "UF_AUTO_899417333101"
    forced_flag_field: str = "UF_AUTO_903852263140"
    _group_index: dict = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        unit_ids = {u.id for u in self.units}
        group_ids = {g.id for g in self.groups}

        for route in self.routes:
            if route.unit_id not in unit_ids:
                raise ConfigError(
                    f"Route references unit {route.unit_id} outside the allow-list"
                )
            if route.group_id not in group_ids:
                raise ConfigError(f"Route references unknown group {route.group_id}")
        if self.forced_group_id not in group_ids:
            raise ConfigError(f"Forced group {self.forced_group_id} is not configured")

        object.__setattr__(self, "_group_index", {g.id: g for g in self.groups})

    @property
    def unit_ids(self) -> frozenset:
        return frozenset(u.id for u in self.units)

    def get_group(self, group_id: int) -> Optional[ProjectGroup]:
        return self._group_index.get(group_id)

    def group_name(self, group_id: int) -> str:
        group = self.get_group(group_id)
        return group.name if group else "unknown"


def _parse_config(data: dict) -> RoutingConfig:
    kwargs = {}

    if "units" in data:
        kwargs["units"] = tuple(
            OrganizationalUnit(id=int(u["id"]), name=str(u["name"]), key=str(u["key"]))
            for u in data["units"]
        )
    if "groups" in data:
        kwargs["groups"] = tuple(
            ProjectGroup(id=int(g["id"]), name=str(g["name"])) for g in data["groups"]
        )
    if "routes" in data:
        kwargs["routes"] = tuple(
            UnitRoute(unit_id=int(r["unit_id"]), group_id=int(r["group_id"]))
            for r in data["routes"]
        )
    if "forced_group_id" in data:
        kwargs["forced_group_id"] = int(data["forced_group_id"])

    fields = data.get("fields") or {}
    for name in ("group_marker", "responsible_marker", "forced_flag"):
        if name in fields:
            kwargs[f"{name}_field"] = str(fields[name])

    return RoutingConfig(**kwargs)


def load_routing_config(config_path: Optional[Path] = None) -> RoutingConfig:
    """Load routing config from YAML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        RoutingConfig with values from file or defaults.

    Raises:
        ConfigError: If the file exists but is malformed or inconsistent
    """
    if config_path is None:
        # Default location relative to project root
        config_path = Path(__file__).parent.parent.parent / "config" / "routing.yaml"

    if not config_path.exists():
        logger.info(f"Routing config not found at {config_path}, using defaults")
        return RoutingConfig()

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Routing config {config_path} must be a mapping")
        config = _parse_config(data)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed routing config {config_path}: {e}") from e
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid routing config {config_path}: {e}") from e

    logger.info(f"Loaded routing config from {config_path}")
    return config


# Global config instance (loaded on first use)
_config: Optional[RoutingConfig] = None


def get_routing_config() -> RoutingConfig:
    """Get the global routing config (lazy loaded)."""
    global _config
    if _config is None:
        path = get_settings().routing_config_path
        _config = load_routing_config(Path(path) if path else None)
    return _config
