"""Network bring-up pipeline.

Creates, in order: network, one subnet per zone (concurrently), internet
gateway, gateway attachment, route table, default IPv4/IPv6 routes
(concurrently), one route table association per subnet, and a security
group with SSH and intra-group ingress.

Every id goes into a :class:`CleanupDescriptor` as soon as it exists. If any
step fails, the resources recorded so far are torn down before the error is
raised, so the environment is never left half built without a rollback.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Sequence
from pathlib import Path

from loguru import logger

from .cleanup import CleanupDescriptor
from .constants import (
    DEFAULT_ROUTE_V4,
    DEFAULT_ROUTE_V6,
    DEFAULT_ZONES,
    NETWORK_CIDR_V4,
    SSH_PORT,
    SUBNET_CIDR_V4_TEMPLATE,
    ResourceTag,
)
from .errors import BringUpError, ResponseShapeError, ValidationError
from .providers.base import Provider
from .teardown import teardown
from .types import IngressRule, Tags

log = logger.bind(component="network")


def subnet_cidr(index: int) -> str:
    """Address block for the subnet of the zone at ``index``."""
    return SUBNET_CIDR_V4_TEMPLATE.format(index=index)


def baseline_ingress(group_id: str) -> list[IngressRule]:
    """SSH from anywhere plus all traffic between members of the group."""
    return [
        IngressRule(
            protocol="tcp",
            from_port=SSH_PORT,
            to_port=SSH_PORT,
            cidrs_v4=(DEFAULT_ROUTE_V4,),
            cidrs_v6=(DEFAULT_ROUTE_V6,),
            description="Allow SSH from anywhere",
        ),
        IngressRule(
            protocol="-1",
            from_port=0,
            to_port=65535,
            source_group_ids=(group_id,),
            description="Allow all traffic within the security group",
        ),
    ]


async def _join[T](calls: Sequence[Awaitable[T]]) -> list[T | Exception]:
    """Await every call to completion, returning results or errors in order."""
    results = await asyncio.gather(*calls, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException) and not isinstance(result, Exception):
            raise result
    return list(results)  # type: ignore[arg-type]


class NetworkBringUp:
    """A single bring-up run.

    The descriptor is only written by this object, after each join point.
    """

    def __init__(
        self,
        provider: Provider,
        name: str,
        project_tag: str,
        zones: Sequence[str] = DEFAULT_ZONES,
        journal: Path | None = None,
    ) -> None:
        self.provider = provider
        self.name = name
        self.project_tag = project_tag
        self.zones = tuple(zones)
        self.journal = journal
        self.descriptor = CleanupDescriptor()
        self.step = "pending"

    def _tags(self, label: str) -> Tags:
        return {
            ResourceTag.NAME: label,
            ResourceTag.PROJECT: self.project_tag,
            ResourceTag.MANAGED: "true",
        }

    def _recorded(self, kind: str, ids: str | Sequence[str]) -> None:
        log.info("Created {kind}: {ids}", kind=kind, ids=ids)
        if self.journal is not None:
            self.descriptor.save(self.journal)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def _create_network(self) -> str:
        self.step = "network"
        network_id = await self.provider.create_network(
            NETWORK_CIDR_V4, True, self._tags(self.name),
        )
        self.descriptor.record_network(network_id)
        self._recorded("network", network_id)
        return network_id

    async def _create_subnets(self, network_id: str) -> list[str]:
        self.step = "subnets"
        results = await _join([
            self.provider.create_subnet(
                network_id, zone, subnet_cidr(i), self._tags(f"{self.name}-subnet-{zone}"),
            )
            for i, zone in enumerate(self.zones)
        ])

        subnet_ids: list[str] = []
        first_error: Exception | None = None
        for zone, result in zip(self.zones, results, strict=True):
            match result:
                case str() as subnet_id:
                    subnet_ids.append(subnet_id)
                case Exception() as e:
                    log.error("Subnet creation in {zone} failed: {err}", zone=zone, err=e)
                    first_error = first_error or e
                case _:
                    log.error("Subnet creation in {zone} returned no subnet", zone=zone)
                    first_error = first_error or ResponseShapeError("create_subnet", "subnet")

        # Record the partial set before aborting so teardown can remove it.
        self.descriptor.record_subnets(subnet_ids)
        self._recorded("subnets", subnet_ids)

        if first_error is not None:
            raise first_error
        return subnet_ids

    async def _create_gateway(self, network_id: str) -> str:
        self.step = "gateway"
        gateway_id = await self.provider.create_gateway(self._tags(f"{self.name}-igw"))
        self.descriptor.record_gateway(gateway_id)
        self._recorded("internet gateway", gateway_id)

        self.step = "gateway attachment"
        await self.provider.attach_gateway(gateway_id, network_id)
        log.info("Attached gateway {gw} to {net}", gw=gateway_id, net=network_id)
        return gateway_id

    async def _create_routing(self, network_id: str, gateway_id: str, subnet_ids: Sequence[str]) -> str:
        self.step = "route table"
        table_id = await self.provider.create_route_table(network_id, self._tags(f"{self.name}-rt"))
        self.descriptor.record_route_tables([table_id])
        self._recorded("route table", table_id)

        self.step = "default routes"
        results = await _join([
            self.provider.create_route(table_id, destination, gateway_id)
            for destination in (DEFAULT_ROUTE_V4, DEFAULT_ROUTE_V6)
        ])
        for result in results:
            if isinstance(result, Exception):
                raise result
        log.info("Added default routes to {table}", table=table_id)

        self.step = "route table associations"
        for subnet_id in subnet_ids:
            state = await self.provider.associate_route_table(table_id, subnet_id)
            if state is None:
                raise ResponseShapeError("associate_route_table", "association state")
            log.info("Associated {table} with {subnet}: {state}", table=table_id, subnet=subnet_id, state=state)

        return table_id

    async def _create_security_group(self, network_id: str) -> str:
        self.step = "security group"
        group_id = await self.provider.create_security_group(
            network_id,
            f"{self.name}-sg",
            f"Security group for {self.name}",
            self._tags(f"{self.name}-sg"),
        )
        self.descriptor.record_security_groups([group_id])
        self._recorded("security group", group_id)

        self.step = "ingress rules"
        await self.provider.authorize_ingress(group_id, baseline_ingress(group_id))
        log.info("Added ingress rules to {group}", group=group_id)
        return group_id

    async def _execute(self) -> str:
        network_id = await self._create_network()
        subnet_ids = await self._create_subnets(network_id)
        gateway_id = await self._create_gateway(network_id)
        await self._create_routing(network_id, gateway_id, subnet_ids)
        await self._create_security_group(network_id)
        self.step = "done"
        return network_id

    # -------------------------------------------------------------------------
    # Entry
    # -------------------------------------------------------------------------

    async def run(self) -> tuple[str, CleanupDescriptor]:
        if not self.zones:
            raise ValidationError("At least one zone is required")
        if len(set(self.zones)) != len(self.zones):
            raise ValidationError(f"Zones must be distinct, got {list(self.zones)}")

        log.info("Creating network {name} across {zones}", name=self.name, zones=list(self.zones))
        try:
            network_id = await self._execute()
        except Exception as e:
            log.error("Bring-up failed at step '{step}': {err}", step=self.step, err=e)
            cleanup_error: Exception | None = None
            if not self.descriptor.is_empty:
                log.warning(
                    "Rolling back {n} resource(s): {d}",
                    n=self.descriptor.resource_count(), d=self.descriptor.to_dict(),
                )
                try:
                    await teardown(self.provider, self.descriptor)
                except Exception as te:
                    # Never replaces the error that triggered the rollback.
                    log.error("Rollback incomplete: {err}", err=te)
                    cleanup_error = te
            raise BringUpError(self.step, e, cleanup_error) from e

        log.success("Finished setting up network {id}", id=network_id)
        log.info("Keep this to tear the network down: {d}", d=self.descriptor.to_dict())
        return network_id, self.descriptor


async def create_network(
    provider: Provider,
    name: str,
    project_tag: str,
    *,
    zones: Sequence[str] = DEFAULT_ZONES,
    journal: Path | None = None,
) -> tuple[str, CleanupDescriptor]:
    """Bring up a network environment.

    Args:
        provider: Provider to create resources with.
        name: Network name, used in every resource's Name tag.
        project_tag: Value of the ``project`` tag on every resource.
        zones: One subnet is created per zone; block index equals zone index.
        journal: If set, the descriptor is saved here after every record.

    Returns:
        The network id and the completed descriptor. The caller owns the
        descriptor and is responsible for passing it to ``teardown``.

    Raises:
        BringUpError: If any step failed. The partial environment was torn
            down first; a failed rollback is attached as ``cleanup_error``.
    """
    return await NetworkBringUp(provider, name, project_tag, zones, journal).run()


__all__ = [
    "NetworkBringUp",
    "baseline_ingress",
    "create_network",
    "subnet_cidr",
]
