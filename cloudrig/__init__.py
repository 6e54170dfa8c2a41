"""cloudrig - provision and tear down EC2 network environments.

Example:

    from cloudrig import create_network, teardown, launch
    from cloudrig.config import load_settings
    from cloudrig.providers import build_provider

    provider = build_provider(load_settings())

    network_id, descriptor = await create_network(provider, "test", "my-project")
    try:
        instances = await launch(provider, template, ["us-west-2a", "us-west-2b"])
    finally:
        await teardown(provider, descriptor)
"""

from loguru import logger

from cloudrig.cleanup import CleanupDescriptor
from cloudrig.cluster import create_cluster
from cloudrig.errors import (
    BringUpError,
    CapabilityNotImplemented,
    CloudrigError,
    LaunchError,
    ProviderError,
    ResponseShapeError,
    TeardownError,
    TransportError,
    ValidationError,
)
from cloudrig.launcher import build_network_interfaces, launch, terminate_instances
from cloudrig.network import create_network
from cloudrig.teardown import teardown
from cloudrig.templates import ClusterTemplate, InstanceTemplate
from cloudrig.types import IngressRule, InstanceHandle, NetworkInterfaceSpec

# Library behavior: silent until setup_logging() enables it
logger.disable("cloudrig")

__version__ = "0.1.0"

__all__ = [
    "BringUpError",
    "CapabilityNotImplemented",
    "CleanupDescriptor",
    "CloudrigError",
    "ClusterTemplate",
    "IngressRule",
    "InstanceHandle",
    "InstanceTemplate",
    "LaunchError",
    "NetworkInterfaceSpec",
    "ProviderError",
    "ResponseShapeError",
    "TeardownError",
    "TransportError",
    "ValidationError",
    "build_network_interfaces",
    "create_cluster",
    "create_network",
    "launch",
    "teardown",
    "terminate_instances",
]
