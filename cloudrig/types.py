"""Value types exchanged between the orchestrator and a provider."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

type Tags = Mapping[str, str]
"""Resource tags as key/value pairs."""


@dataclass(frozen=True, slots=True)
class InstanceHandle:
    """A created compute instance as reported by the provider."""

    instance_id: str
    zone: str
    state: str = "pending"


@dataclass(frozen=True, slots=True)
class NetworkInterfaceSpec:
    """One network interface attached at launch.

    Only device index 0 gets a public address; every interface joins the
    same subnet and security group.
    """

    device_index: int
    subnet_id: str
    security_group_id: str
    public_ip: bool = False
    delete_on_termination: bool = True


@dataclass(frozen=True, slots=True)
class IngressRule:
    """An inbound security group rule.

    ``protocol`` follows EC2 conventions: ``"tcp"``, ``"udp"``, ``"icmp"``
    or ``"-1"`` for every protocol.
    """

    protocol: str
    from_port: int
    to_port: int
    cidrs_v4: tuple[str, ...] = ()
    cidrs_v6: tuple[str, ...] = ()
    source_group_ids: tuple[str, ...] = ()
    description: str = ""


__all__ = [
    "IngressRule",
    "InstanceHandle",
    "NetworkInterfaceSpec",
    "Tags",
]
