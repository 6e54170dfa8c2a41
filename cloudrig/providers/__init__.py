"""Cloud providers for cloudrig.

Example:
    from cloudrig.config import load_settings
    from cloudrig.providers import build_provider

    provider = build_provider(load_settings())
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloudrig.providers.base import Provider

if TYPE_CHECKING:
    from cloudrig.config import Settings
    from cloudrig.providers.ec2 import EC2Provider


def build_provider(settings: Settings) -> EC2Provider:
    """Construct the EC2 provider through its DI module."""
    from cloudrig.providers.clients import build_injector
    from cloudrig.providers.ec2 import EC2Provider

    return build_injector(settings).get(EC2Provider)


__all__ = ["Provider", "build_provider"]
