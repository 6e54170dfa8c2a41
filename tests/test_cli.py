"""Tests for the command line entry point, wired to the in-memory provider."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger

from cloudrig import cli
from cloudrig.cleanup import CleanupDescriptor
from tests.fakes import FakeProvider


@pytest.fixture
def fake(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[FakeProvider]:
    provider = FakeProvider()
    monkeypatch.setattr(cli, "build_provider", lambda settings: provider)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("cloudrig.config.GLOBAL_CONFIG_PATH", tmp_path / "none.toml")
    yield provider
    logger.disable("cloudrig")


class TestParser:
    def test_network_up(self) -> None:
        args = cli.build_parser().parse_args(["network", "up", "test", "--descriptor", "net.json"])
        assert (args.command, args.action, args.name) == ("network", "up", "test")
        assert args.descriptor == Path("net.json")

    def test_down_requires_descriptor(self) -> None:
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["network", "down"])

    def test_global_options(self) -> None:
        args = cli.build_parser().parse_args(
            ["--zones", "us-east-1a", "us-east-1b", "terminate", "i-1"],
        )
        assert args.zones == ["us-east-1a", "us-east-1b"]
        assert args.instance_ids == ["i-1"]


class TestCommands:
    def test_network_up_and_down(self, fake: FakeProvider, tmp_path: Path) -> None:
        descriptor_path = tmp_path / "net.json"

        assert cli.main(["network", "up", "test", "--descriptor", str(descriptor_path)]) == 0
        descriptor = CleanupDescriptor.load(descriptor_path)
        assert len(descriptor.subnet_ids or ()) == 3
        assert fake.remaining() == 7

        assert cli.main(["network", "down", "--descriptor", str(descriptor_path)]) == 0
        assert fake.remaining() == 0

    def test_zones_option(self, fake: FakeProvider) -> None:
        assert cli.main(["--zones", "us-east-1a", "network", "up", "test"]) == 0
        assert len(fake.subnets) == 1

    def test_failed_bring_up_exits_nonzero(self, fake: FakeProvider) -> None:
        fake.fail("create_gateway", code="InternetGatewayLimitExceeded")

        assert cli.main(["network", "up", "test"]) == 1
        assert fake.remaining() == 0

    def test_launch_and_terminate(self, fake: FakeProvider) -> None:
        fake.fail("create_instance", code="InsufficientInstanceCapacity", times=1)
        argv = [
            "launch",
            "--image", "ami-1",
            "--instance-type", "t2.micro",
            "--subnet", "subnet-1",
            "--security-group", "sg-1",
            "--delay", "0",
        ]

        assert cli.main(argv) == 0
        (instance,) = fake.instances.values()
        assert instance.zone == "us-west-2b"

        assert cli.main(["terminate", instance.instance_id]) == 0
        assert fake.instances == {}

    def test_launch_with_efa_fails(self, fake: FakeProvider) -> None:
        argv = [
            "launch",
            "--image", "ami-1",
            "--instance-type", "t2.micro",
            "--subnet", "subnet-1",
            "--security-group", "sg-1",
            "--efa",
        ]

        assert cli.main(argv) == 1
        assert fake.calls == []

    def test_missing_user_data_file(self, fake: FakeProvider, tmp_path: Path) -> None:
        argv = [
            "launch",
            "--image", "ami-1",
            "--instance-type", "t2.micro",
            "--subnet", "subnet-1",
            "--security-group", "sg-1",
            "--user-data", str(tmp_path / "missing.sh"),
        ]

        assert cli.main(argv) == 1
        assert fake.calls == []

    def test_missing_descriptor_exits_nonzero(self, fake: FakeProvider, tmp_path: Path) -> None:
        assert cli.main(["network", "down", "--descriptor", str(tmp_path / "missing.json")]) == 1
        assert fake.calls == []

    def test_zero_attempts_rejected(self, fake: FakeProvider) -> None:
        argv = [
            "launch",
            "--image", "ami-1",
            "--instance-type", "t2.micro",
            "--subnet", "subnet-1",
            "--security-group", "sg-1",
            "--attempts", "0",
        ]

        assert cli.main(argv) == 1
        assert fake.calls == []
