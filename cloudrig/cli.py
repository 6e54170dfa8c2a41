"""Command line entry point.

    python -m cloudrig network up NAME --descriptor net.json
    python -m cloudrig network down --descriptor net.json
    python -m cloudrig launch --image ami-... --instance-type g5.2xlarge \\
        --subnet subnet-... --security-group sg-... --ifaces 4
    python -m cloudrig terminate i-0123 i-4567
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from .cleanup import CleanupDescriptor
from .config import Settings, load_settings
from .errors import CloudrigError
from .launcher import launch, terminate_instances
from .logging import LogConfig, setup_logging
from .network import create_network
from .providers import Provider, build_provider
from .teardown import teardown
from .templates import InstanceTemplate
from .userdata import load_user_data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cloudrig", description="Provision EC2 networks and instances")
    parser.add_argument("--region", type=str, default=None)
    parser.add_argument("--zones", nargs="+", default=None, help="Availability zones to use")
    parser.add_argument("--project-tag", type=str, default=None)
    parser.add_argument("--log-level", type=str, default="INFO")
    parser.add_argument("--log-file", type=str, default=None)
    commands = parser.add_subparsers(dest="command", required=True)

    network = commands.add_parser("network", help="Bring a network up or down")
    network_cmds = network.add_subparsers(dest="action", required=True)

    up = network_cmds.add_parser("up", help="Create a network environment")
    up.add_argument("name", type=str)
    up.add_argument(
        "--descriptor", type=Path, default=None,
        help="Save the cleanup descriptor here, updated after every created resource",
    )

    down = network_cmds.add_parser("down", help="Tear down a saved network environment")
    down.add_argument("--descriptor", type=Path, required=True)

    run = commands.add_parser("launch", help="Launch an instance, trying zones in turn")
    run.add_argument("--image", required=True)
    run.add_argument("--instance-type", required=True)
    run.add_argument("--subnet", required=True)
    run.add_argument("--security-group", required=True)
    run.add_argument("--ifaces", type=int, default=1)
    run.add_argument("--efa", action="store_true", help="Request EFA interfaces (unsupported)")
    run.add_argument("--user-data", type=Path, default=None)
    run.add_argument("--attempts", type=int, default=None)
    run.add_argument("--delay", type=float, default=None)

    term = commands.add_parser("terminate", help="Terminate instances")
    term.add_argument("instance_ids", nargs="+")

    return parser


async def _network_up(provider: Provider, settings: Settings, args: argparse.Namespace) -> None:
    _, descriptor = await create_network(
        provider, args.name, settings.project_tag,
        zones=settings.zones, journal=args.descriptor,
    )
    print(json.dumps(descriptor.to_dict(), indent=2))


async def _network_down(provider: Provider, args: argparse.Namespace) -> None:
    descriptor = CleanupDescriptor.load(args.descriptor)
    await teardown(provider, descriptor)


async def _launch(provider: Provider, settings: Settings, args: argparse.Namespace) -> None:
    template = InstanceTemplate(
        zone=settings.zones[0],
        image_id=args.image,
        instance_type=args.instance_type,
        subnet_id=args.subnet,
        security_group_id=args.security_group,
        num_ifaces=args.ifaces,
        use_efa=args.efa,
        user_data=load_user_data(args.user_data) if args.user_data else None,
        project_tag=settings.project_tag,
    )
    instances = await launch(
        provider, template, settings.zones,
        attempts=settings.launch_attempts if args.attempts is None else args.attempts,
        delay=settings.launch_delay if args.delay is None else args.delay,
    )
    for instance in instances:
        print(f"{instance.instance_id}\t{instance.zone}\t{instance.state}")


async def _dispatch(args: argparse.Namespace) -> None:
    settings = load_settings(region=args.region, zones=args.zones, project_tag=args.project_tag)
    provider = build_provider(settings)

    match args.command, getattr(args, "action", None):
        case "network", "up":
            await _network_up(provider, settings, args)
        case "network", "down":
            await _network_down(provider, args)
        case "launch", _:
            await _launch(provider, settings, args)
        case "terminate", _:
            await terminate_instances(provider, args.instance_ids)
        case command:
            raise SystemExit(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(LogConfig(level=args.log_level, file=args.log_file))

    try:
        asyncio.run(_dispatch(args))
    except CloudrigError as e:
        logger.error("{err}", err=e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
