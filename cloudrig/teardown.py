"""Teardown engine: delete what a cleanup descriptor records.

Resources are deleted in reverse dependency order:

    security groups -> gateway detach -> gateway -> subnets
    -> route table associations -> route tables -> network

Absent fields are skipped. Every step runs even if an earlier one failed,
whatever the exception type; failures are collected and raised together as
a :class:`TeardownError`.
"Not found" responses mean the resource is already gone and count as done,
so running teardown twice on the same descriptor is safe.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from loguru import logger

from .cleanup import CleanupDescriptor
from .constants import CauseCode
from .errors import ProviderError, TeardownError, TeardownFailure
from .providers.base import Provider

log = logger.bind(component="teardown")


class _Teardown:
    """One teardown run over a descriptor. Never mutates the descriptor."""

    def __init__(self, provider: Provider, descriptor: CleanupDescriptor) -> None:
        self.provider = provider
        self.descriptor = descriptor
        self.failures: list[TeardownFailure] = []

    async def _attempt(
        self,
        resource: str,
        resource_id: str,
        call: Callable[[], Awaitable[object]],
    ) -> bool:
        """Run one delete-like call. Returns True when the resource is gone."""
        log.info("Removing {resource}: {id}", resource=resource, id=resource_id)
        try:
            await call()
        except Exception as e:
            if isinstance(e, ProviderError) and e.is_not_found:
                log.warning(
                    "{resource} {id} already gone ({code}), skipping",
                    resource=resource, id=resource_id, code=e.code,
                )
                return True
            log.error("Failed to remove {resource} {id}: {err}", resource=resource, id=resource_id, err=e)
            self.failures.append(TeardownFailure(resource, resource_id, e))
            return False
        return True

    async def run(self) -> None:
        d = self.descriptor

        if d.security_group_ids is not None:
            for group_id in d.security_group_ids:
                await self._attempt(
                    "security group", group_id,
                    lambda gid=group_id: self.provider.delete_security_group(gid),
                )
        else:
            log.debug("No security groups to delete")

        if d.gateway_id is not None:
            gateway_id = d.gateway_id
            if d.network_id is not None:
                network_id = d.network_id
                await self._attempt(
                    "gateway attachment", gateway_id,
                    lambda: self.provider.detach_gateway(gateway_id, network_id),
                )
            else:
                log.warning("Gateway {id} has no recorded network, skipping detach", id=gateway_id)
            await self._attempt(
                "gateway", gateway_id,
                lambda: self.provider.delete_gateway(gateway_id),
            )
        else:
            log.debug("No gateway to detach or delete")

        if d.subnet_ids is not None:
            for subnet_id in d.subnet_ids:
                await self._attempt(
                    "subnet", subnet_id,
                    lambda sid=subnet_id: self.provider.delete_subnet(sid),
                )
        else:
            log.debug("No subnets to delete")

        if d.route_table_ids is not None:
            for table_id in d.route_table_ids:
                await self._disassociate_all(table_id)
            for table_id in d.route_table_ids:
                await self._attempt(
                    "route table", table_id,
                    lambda tid=table_id: self.provider.delete_route_table(tid),
                )
        else:
            log.debug("No route tables to disassociate or delete")

        if d.network_id is not None:
            network_id = d.network_id
            await self._attempt(
                "network", network_id,
                lambda: self.provider.delete_network(network_id),
            )
        else:
            log.debug("No network to delete")

    async def _disassociate_all(self, table_id: str) -> None:
        try:
            associations = await self.provider.list_associations(table_id)
        except Exception as e:
            if isinstance(e, ProviderError) and e.is_not_found:
                log.warning("Route table {id} already gone, nothing to disassociate", id=table_id)
                return
            log.error("Failed to list associations of {id}: {err}", id=table_id, err=e)
            self.failures.append(TeardownFailure("route table associations", table_id, e))
            return

        for association_id in associations:
            try:
                await self.provider.disassociate_route_table(association_id)
            except Exception as e:
                if isinstance(e, ProviderError) and e.code == CauseCode.ASSOCIATION_NOT_FOUND:
                    # Expected race: the association went away with its subnet.
                    log.warning(
                        "Association {id} not found, skipping. Something else may have removed it.",
                        id=association_id,
                    )
                    continue
                log.error("Failed to disassociate {id}: {err}", id=association_id, err=e)
                self.failures.append(TeardownFailure("route table association", association_id, e))
            else:
                log.info("Disassociated route table {table}: {id}", table=table_id, id=association_id)


async def teardown(provider: Provider, descriptor: CleanupDescriptor) -> None:
    """Delete every resource recorded in ``descriptor``.

    Args:
        provider: Provider the resources live in.
        descriptor: What to delete. Read only.

    Raises:
        TeardownError: If any resource could not be removed. All other
            resources were still processed.
    """
    log.info("Received clean-up for network {id}", id=descriptor.network_id)

    run = _Teardown(provider, descriptor)
    await run.run()

    if run.failures:
        raise TeardownError(run.failures)

    log.info("Clean-up complete for network {id}", id=descriptor.network_id)


__all__ = ["teardown"]
