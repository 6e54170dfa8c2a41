"""Cleanup descriptor: the record of what a bring-up run actually created.

The descriptor is the only source of truth for what teardown deletes. Each
field starts absent and is written exactly once, right after the matching
create call returns an id. ``None`` (never reached) and an empty tuple
(reached, nothing created) are different states.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ValidationError

type RawDescriptor = dict[str, str | list[str] | None]

_ID_FIELDS = ("network_id", "gateway_id")
_ID_LIST_FIELDS = ("subnet_ids", "route_table_ids", "security_group_ids")


@dataclass(slots=True)
class CleanupDescriptor:
    """Resources created by a bring-up run, in creation order."""

    network_id: str | None = None
    gateway_id: str | None = None
    subnet_ids: tuple[str, ...] | None = None
    route_table_ids: tuple[str, ...] | None = None
    security_group_ids: tuple[str, ...] | None = None

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def _set_once(self, name: str, value: Any) -> None:
        if getattr(self, name) is not None:
            raise ValueError(f"{name} is already recorded as {getattr(self, name)!r}")
        setattr(self, name, value)

    def record_network(self, network_id: str) -> None:
        self._set_once("network_id", network_id)

    def record_gateway(self, gateway_id: str) -> None:
        self._set_once("gateway_id", gateway_id)

    def record_subnets(self, subnet_ids: Iterable[str]) -> None:
        self._set_once("subnet_ids", tuple(subnet_ids))

    def record_route_tables(self, route_table_ids: Iterable[str]) -> None:
        self._set_once("route_table_ids", tuple(route_table_ids))

    def record_security_groups(self, security_group_ids: Iterable[str]) -> None:
        self._set_once("security_group_ids", tuple(security_group_ids))

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        """True when nothing at all has been recorded."""
        return all(getattr(self, name) is None for name in (*_ID_FIELDS, *_ID_LIST_FIELDS))

    def resource_count(self) -> int:
        singles = sum(1 for name in _ID_FIELDS if getattr(self, name) is not None)
        lists = sum(len(getattr(self, name) or ()) for name in _ID_LIST_FIELDS)
        return singles + lists

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> RawDescriptor:
        """Serialize to a JSON-compatible dictionary."""
        data: RawDescriptor = {name: getattr(self, name) for name in _ID_FIELDS}
        for name in _ID_LIST_FIELDS:
            value = getattr(self, name)
            data[name] = None if value is None else list(value)
        return data

    @classmethod
    def from_dict(cls, data: RawDescriptor) -> CleanupDescriptor:
        """Deserialize from a dictionary produced by ``to_dict``.

        Raises:
            ValidationError: If a field has the wrong shape or is unknown.
        """
        unknown = set(data) - {*_ID_FIELDS, *_ID_LIST_FIELDS}
        if unknown:
            raise ValidationError(f"Unknown descriptor field(s): {', '.join(sorted(unknown))}")

        descriptor = cls()
        for name in _ID_FIELDS:
            match data.get(name):
                case None:
                    pass
                case str() as value:
                    setattr(descriptor, name, value)
                case other:
                    raise ValidationError(f"{name} must be a string, got {type(other).__name__}")

        for name in _ID_LIST_FIELDS:
            match data.get(name):
                case None:
                    pass
                case list() as values if all(isinstance(v, str) for v in values):
                    setattr(descriptor, name, tuple(values))
                case other:
                    raise ValidationError(f"{name} must be a list of strings, got {other!r}")

        return descriptor

    def save(self, path: Path) -> None:
        """Write the descriptor as JSON, replacing any previous content."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(self.to_dict(), indent=2) + "\n")
        tmp.replace(path)

    @classmethod
    def load(cls, path: Path) -> CleanupDescriptor:
        try:
            text = path.read_text()
        except OSError as e:
            raise ValidationError(f"Failed to read descriptor at {path}: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(f"{path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"{path} must contain a JSON object")
        return cls.from_dict(data)


__all__ = ["CleanupDescriptor"]
