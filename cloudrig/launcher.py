"""Instance launcher: try candidate zones in order until one launch succeeds."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from .constants import DEFAULT_LAUNCH_DELAY
from .errors import (
    LaunchError,
    ProviderError,
    ResponseShapeError,
    ValidationError,
    ZoneFailure,
)
from .providers.base import Provider
from .templates import InstanceTemplate
from .types import InstanceHandle, NetworkInterfaceSpec

log = logger.bind(component="launcher")


# =============================================================================
# Network Interfaces
# =============================================================================


def build_network_interfaces(template: InstanceTemplate) -> list[NetworkInterfaceSpec]:
    """Build one interface spec per index; only index 0 gets a public address.

    Raises:
        ValidationError: If EFA interfaces are requested or the count is invalid.
    """
    template.validate()
    return [
        NetworkInterfaceSpec(
            device_index=i,
            subnet_id=template.subnet_id,
            security_group_id=template.security_group_id,
            public_ip=i == 0,
        )
        for i in range(template.num_ifaces)
    ]


def for_zone(
    template: InstanceTemplate,
    zone: str,
    subnets: Mapping[str, str] | None = None,
) -> InstanceTemplate:
    """Return a copy of the template placed in ``zone``.

    When ``subnets`` maps the zone to a subnet, that subnet is substituted too.
    """
    if subnets and zone in subnets:
        return replace(template, zone=zone, subnet_id=subnets[zone])
    return replace(template, zone=zone)


# =============================================================================
# Launch
# =============================================================================


async def launch_in_zone(
    provider: Provider,
    template: InstanceTemplate,
) -> list[InstanceHandle]:
    """Make a single launch attempt with the template as given."""
    interfaces = build_network_interfaces(template)

    try:
        instances = await provider.create_instance(template, interfaces)
    except ProviderError as e:
        if e.code:
            log.warning("Launch in {zone} failed with code {code}", zone=template.zone, code=e.code)
        else:
            log.warning("Launch in {zone} failed without a cause code: {err}", zone=template.zone, err=e)
        raise

    if not instances:
        log.error("Launch in {zone} reported success but returned no instances", zone=template.zone)
        raise ResponseShapeError("create_instance", "instances")

    if len(instances) > 1:
        log.warning(
            "Expected to create a single instance in {zone}, but created {n}: {ids}",
            zone=template.zone,
            n=len(instances),
            ids=[i.instance_id for i in instances],
        )

    for instance in instances:
        log.info("Created instance {id} in {zone}", id=instance.instance_id, zone=instance.zone)
    return instances


async def launch(
    provider: Provider,
    template: InstanceTemplate,
    candidate_zones: Sequence[str],
    *,
    attempts: int | None = None,
    delay: float = DEFAULT_LAUNCH_DELAY,
    subnets: Mapping[str, str] | None = None,
) -> list[InstanceHandle]:
    """Launch an instance, trying each candidate zone in turn.

    Attempt ``n`` targets ``candidate_zones[n % len(candidate_zones)]``, so a
    budget larger than the zone list cycles through it. The first success
    wins. Between failed attempts the launcher waits ``delay`` seconds.

    Args:
        provider: Provider to launch against.
        template: Instance template; its zone is replaced per attempt.
        candidate_zones: Zones to try, in order.
        attempts: Attempt budget. Defaults to one attempt per zone.
        delay: Fixed pause between attempts, in seconds.
        subnets: Optional zone -> subnet mapping applied with the zone.

    Returns:
        Handles of the instances the successful attempt created.

    Raises:
        ValidationError: Before any provider call, if the request is invalid.
        LaunchError: If every attempt failed. Carries one entry per attempt.
    """
    template.validate()
    zones = tuple(candidate_zones)
    if not zones:
        raise ValidationError("At least one candidate zone is required")

    budget = len(zones) if attempts is None else attempts
    if budget < 1:
        raise ValidationError(f"attempts must be at least 1, got {budget}")

    failures: list[ZoneFailure] = []

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(budget),
            wait=wait_fixed(delay),
            retry=retry_if_exception_type((ProviderError, ResponseShapeError)),
        ):
            with attempt:
                number = attempt.retry_state.attempt_number
                zone = zones[(number - 1) % len(zones)]
                log.info("Attempt {n}/{total}: launching in {zone}", n=number, total=budget, zone=zone)

                try:
                    return await launch_in_zone(provider, for_zone(template, zone, subnets))
                except (ProviderError, ResponseShapeError) as e:
                    failures.append(ZoneFailure(zone=zone, error=e))
                    raise
    except RetryError as e:
        raise LaunchError(failures) from e.last_attempt.exception()

    # stop_after_attempt(budget >= 1) always runs at least one attempt
    raise LaunchError(failures)


async def terminate_instances(provider: Provider, instance_ids: Sequence[str]) -> None:
    """Terminate instances created by a previous launch."""
    if not instance_ids:
        return
    log.info("Terminating instances: {ids}", ids=list(instance_ids))
    await provider.terminate_instances(list(instance_ids))


__all__ = [
    "build_network_interfaces",
    "for_zone",
    "launch",
    "launch_in_zone",
    "terminate_instances",
]
