"""EC2 client factory with dependency injection.

Provides the typed client factory the EC2 provider is built from.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

import aioboto3
from botocore.config import Config
from injector import Binder, Injector, Module, provider, singleton

from cloudrig.config import Settings

# =============================================================================
# Client Type
# =============================================================================

type Client[T] = Callable[[], AbstractAsyncContextManager[T]]
"""Factory that returns an async context manager for a client."""


class EC2ClientFactory:
    """Wrapper for EC2 client factory."""

    def __init__(self, factory: Client[Any]) -> None:
        self._factory = factory

    def __call__(self) -> AbstractAsyncContextManager[Any]:
        return self._factory()


# =============================================================================
# EC2 Module
# =============================================================================


class EC2Module(Module):
    """DI module that provides the EC2 client factory and provider.

    Usage:
        >>> injector = Injector([EC2Module(Settings(region="us-west-2"))])
        >>> provider = injector.get(EC2Provider)
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def configure(self, binder: Binder) -> None:
        binder.bind(Settings, to=self._settings)

    @singleton
    @provider
    def provide_session(self) -> aioboto3.Session:
        """Provide singleton aioboto3 session."""
        return aioboto3.Session()

    @singleton
    @provider
    def provide_ec2(self, session: aioboto3.Session, settings: Settings) -> EC2ClientFactory:
        """Provide EC2 client factory."""
        client_config = Config(
            connect_timeout=settings.request_timeout,
            read_timeout=settings.request_timeout,
            retries={"mode": "standard"},
        )

        @asynccontextmanager
        async def factory() -> AsyncIterator[Any]:
            async with session.client(
                "ec2", region_name=settings.region, config=client_config,
            ) as client:
                yield client

        return EC2ClientFactory(factory)


def build_injector(settings: Settings) -> Injector:
    return Injector([EC2Module(settings)])


__all__ = [
    "Client",
    "EC2ClientFactory",
    "EC2Module",
    "build_injector",
]
