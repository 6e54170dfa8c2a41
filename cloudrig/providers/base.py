"""Provider protocol consumed by the orchestrator.

Every operation is async. Create calls return the new resource id; failures
raise :class:`~cloudrig.errors.ProviderError` (with a cause code when the
provider supplies one) or :class:`~cloudrig.errors.TransportError`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from cloudrig.templates import InstanceTemplate
    from cloudrig.types import IngressRule, InstanceHandle, NetworkInterfaceSpec, Tags


@runtime_checkable
class Provider(Protocol):
    """Network and compute operations against a cloud API."""

    # -------------------------------------------------------------------------
    # Compute
    # -------------------------------------------------------------------------

    async def create_instance(
        self,
        template: InstanceTemplate,
        interfaces: Sequence[NetworkInterfaceSpec],
    ) -> list[InstanceHandle]:
        """Launch one instance. May return an empty or oversized list."""
        ...

    async def terminate_instances(self, instance_ids: Sequence[str]) -> None: ...

    # -------------------------------------------------------------------------
    # Network
    # -------------------------------------------------------------------------

    async def create_network(self, cidr_v4: str, want_cidr_v6: bool, tags: Tags) -> str: ...

    async def delete_network(self, network_id: str) -> None: ...

    async def create_subnet(
        self,
        network_id: str,
        zone: str,
        cidr_v4: str,
        tags: Tags,
    ) -> str | None:
        """Create a subnet. ``None`` means the response carried no subnet."""
        ...

    async def delete_subnet(self, subnet_id: str) -> None: ...

    # -------------------------------------------------------------------------
    # Gateway
    # -------------------------------------------------------------------------

    async def create_gateway(self, tags: Tags) -> str: ...

    async def attach_gateway(self, gateway_id: str, network_id: str) -> None: ...

    async def detach_gateway(self, gateway_id: str, network_id: str) -> None: ...

    async def delete_gateway(self, gateway_id: str) -> None: ...

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    async def create_route_table(self, network_id: str, tags: Tags) -> str: ...

    async def create_route(self, table_id: str, destination: str, gateway_id: str) -> None: ...

    async def associate_route_table(self, table_id: str, subnet_id: str) -> str | None:
        """Associate a table with a subnet and return the association state."""
        ...

    async def list_associations(self, table_id: str) -> list[str]: ...

    async def disassociate_route_table(self, association_id: str) -> None: ...

    async def delete_route_table(self, table_id: str) -> None: ...

    # -------------------------------------------------------------------------
    # Security Groups
    # -------------------------------------------------------------------------

    async def create_security_group(
        self,
        network_id: str,
        name: str,
        description: str,
        tags: Tags,
    ) -> str: ...

    async def authorize_ingress(self, group_id: str, rules: Sequence[IngressRule]) -> None: ...

    async def delete_security_group(self, group_id: str) -> None: ...


__all__ = ["Provider"]
