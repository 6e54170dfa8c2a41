"""TOML-based settings.

Loads ~/.cloudrig/defaults.toml (global) and cloudrig.toml (project), merges
them, and applies keyword overrides on top. Both files use a ``[cloudrig]``
table:

    [cloudrig]
    region = "us-west-2"
    zones = ["us-west-2a", "us-west-2b", "us-west-2c"]
    key_name = "my-key"
    launch_attempts = 1024
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .constants import (
    DEFAULT_LAUNCH_ATTEMPTS,
    DEFAULT_LAUNCH_DELAY,
    DEFAULT_PROJECT_TAG,
    DEFAULT_REGION,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_ZONES,
)
from .errors import ValidationError

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".cloudrig" / "defaults.toml"
PROJECT_CONFIG_NAME = "cloudrig.toml"


@dataclass(frozen=True, slots=True)
class Settings:
    """Provider and orchestration settings.

    Args:
        region: AWS region for every resource.
        zones: Availability zones used for subnets and launch candidates.
        ipv6_border_group: Network border group for the IPv6 block. Defaults to region.
        key_name: SSH key pair set on launched instances.
        instance_profile_arn: IAM instance profile set on launched instances.
        launch_attempts: Attempt budget for the instance launcher.
        launch_delay: Seconds to wait between launch attempts.
        request_timeout: Connect/read timeout for API requests, in seconds.
        project_tag: Default ``project`` tag value.
    """

    region: str = DEFAULT_REGION
    zones: tuple[str, ...] = DEFAULT_ZONES
    ipv6_border_group: str | None = None
    key_name: str | None = None
    instance_profile_arn: str | None = None
    launch_attempts: int = DEFAULT_LAUNCH_ATTEMPTS
    launch_delay: float = DEFAULT_LAUNCH_DELAY
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    project_tag: str = DEFAULT_PROJECT_TAG

    @property
    def border_group(self) -> str:
        return self.ipv6_border_group or self.region


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    return dict(merged.get("cloudrig", {}))


def settings_from_dict(raw: RawConfig) -> Settings:
    """Build Settings from a flat mapping, rejecting unknown keys."""
    known = {f.name for f in fields(Settings)}
    unknown = set(raw) - known
    if unknown:
        raise ValidationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

    values = dict(raw)
    if "zones" in values:
        match values["zones"]:
            case list() | tuple() as zones if all(isinstance(z, str) for z in zones):
                values["zones"] = tuple(zones)
            case other:
                raise ValidationError(f"zones must be a list of zone names, got {other!r}")
    if "launch_delay" in values:
        values["launch_delay"] = float(values["launch_delay"])

    settings = Settings(**values)
    if not settings.zones:
        raise ValidationError("At least one zone is required")
    if settings.launch_attempts < 1:
        raise ValidationError("launch_attempts must be at least 1")
    return settings


def load_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
    **overrides: Any,
) -> Settings:
    """Load settings from TOML files, then apply non-None keyword overrides."""
    raw = load_config(project_dir=project_dir, global_path=global_path)
    raw.update({k: v for k, v in overrides.items() if v is not None})
    return settings_from_dict(raw)


__all__ = [
    "Settings",
    "load_config",
    "load_settings",
    "settings_from_dict",
]
