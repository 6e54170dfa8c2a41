"""Centralized constants and enums for cloudrig.

Address plan, tag keys, cause codes and pacing defaults live here so the
launcher, bring-up pipeline and teardown engine agree on them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# Resource Tags
# =============================================================================


class ResourceTag(StrEnum):
    """Tag keys written on every resource cloudrig creates."""

    NAME = "Name"
    PROJECT = "project"
    MANAGED = "cloudrig:managed"


# =============================================================================
# Address Plan
# =============================================================================

NETWORK_CIDR_V4: Final = "10.0.0.0/16"
SUBNET_CIDR_V4_TEMPLATE: Final = "10.0.{index}.0/24"

DEFAULT_ROUTE_V4: Final = "0.0.0.0/0"
DEFAULT_ROUTE_V6: Final = "::/0"

SSH_PORT: Final = 22

DEFAULT_REGION: Final = "us-west-2"
DEFAULT_ZONES: Final[tuple[str, ...]] = ("us-west-2a", "us-west-2b", "us-west-2c")


# =============================================================================
# Provider Cause Codes
# =============================================================================


class CauseCode(StrEnum):
    """EC2 error codes the orchestrator branches on."""

    ASSOCIATION_NOT_FOUND = "InvalidAssociationID.NotFound"
    GATEWAY_NOT_ATTACHED = "Gateway.NotAttached"


NOT_FOUND_SUFFIX: Final = ".NotFound"


# =============================================================================
# Launch & Cluster Limits
# =============================================================================

MAX_SHARED_VOLUME_ATTACHMENTS: Final = 16

DEFAULT_LAUNCH_ATTEMPTS: Final = 1024
DEFAULT_LAUNCH_DELAY: Final = 3.0
DEFAULT_REQUEST_TIMEOUT: Final = 30
DEFAULT_PROJECT_TAG: Final = "cloudrig"
