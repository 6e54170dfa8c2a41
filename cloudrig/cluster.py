"""Cluster-level provisioning.

Multi-instance cluster creation and shared volume wiring are placeholders:
the request is fully validated, then :class:`CapabilityNotImplemented` is
raised before the provider is touched.
"""

from __future__ import annotations

from typing import NoReturn

from loguru import logger

from .errors import CapabilityNotImplemented
from .providers.base import Provider
from .templates import ClusterTemplate

log = logger.bind(component="cluster")


async def create_cluster(provider: Provider, template: ClusterTemplate) -> NoReturn:
    """Validate a cluster request; creation itself is not implemented yet.

    Raises:
        ValidationError: If the template breaks a cluster invariant.
        CapabilityNotImplemented: Always, once validation passes.
    """
    template.validate()
    log.info(
        "Validated cluster {name}: {n} x {itype}",
        name=template.name,
        n=template.num_instances,
        itype=template.instance_template.instance_type,
    )
    if template.attach_shared_ebs:
        raise CapabilityNotImplemented("shared volume attachment")
    raise CapabilityNotImplemented("cluster creation")


__all__ = ["create_cluster"]
