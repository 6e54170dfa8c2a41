"""Tests for the EC2 provider against a mocked aioboto3 client."""

from __future__ import annotations

import base64
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError, CredentialRetrievalError, EndpointConnectionError
from injector import Injector

from cloudrig.cleanup import CleanupDescriptor
from cloudrig.config import Settings
from cloudrig.errors import LaunchError, ProviderError, ResponseShapeError, TeardownError, TransportError
from cloudrig.launcher import build_network_interfaces, launch
from cloudrig.network import baseline_ingress
from cloudrig.providers.base import Provider
from cloudrig.providers.clients import EC2ClientFactory, EC2Module
from cloudrig.providers.ec2 import EC2Provider, ip_permissions, tag_specifications
from cloudrig.teardown import teardown
from cloudrig.templates import InstanceTemplate


def _client_error(code: str, operation: str = "DeleteVpc") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} happened"}}, operation)


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def ec2_provider(client: MagicMock) -> EC2Provider:
    @asynccontextmanager
    async def factory() -> AsyncIterator[Any]:
        yield client

    return EC2Provider(EC2ClientFactory(factory), Settings(key_name="ops"))


@pytest.fixture
def unreachable_provider() -> EC2Provider:
    @asynccontextmanager
    async def factory() -> AsyncIterator[Any]:
        raise CredentialRetrievalError(provider="sso", error_msg="token expired")
        yield

    return EC2Provider(EC2ClientFactory(factory), Settings())


class TestErrorTranslation:
    @pytest.mark.asyncio
    async def test_client_error_keeps_code(self, client: MagicMock, ec2_provider: EC2Provider) -> None:
        client.delete_vpc = AsyncMock(side_effect=_client_error("DependencyViolation"))

        with pytest.raises(ProviderError) as exc_info:
            await ec2_provider.delete_network("vpc-1")

        assert exc_info.value.operation == "delete_vpc"
        assert exc_info.value.code == "DependencyViolation"
        assert not exc_info.value.is_not_found

    @pytest.mark.asyncio
    async def test_not_found_code(self, client: MagicMock, ec2_provider: EC2Provider) -> None:
        client.delete_subnet = AsyncMock(side_effect=_client_error("InvalidSubnetID.NotFound", "DeleteSubnet"))

        with pytest.raises(ProviderError) as exc_info:
            await ec2_provider.delete_subnet("subnet-1")

        assert exc_info.value.is_not_found

    @pytest.mark.asyncio
    async def test_connection_failure_is_transport_error(
        self, client: MagicMock, ec2_provider: EC2Provider,
    ) -> None:
        client.delete_vpc = AsyncMock(
            side_effect=EndpointConnectionError(endpoint_url="https://ec2.us-west-2.amazonaws.com"),
        )

        with pytest.raises(TransportError) as exc_info:
            await ec2_provider.delete_network("vpc-1")

        assert exc_info.value.code is None

    def test_not_attached_counts_as_gone(self) -> None:
        assert ProviderError("detach_internet_gateway", "x", code="Gateway.NotAttached").is_not_found


class TestRequests:
    @pytest.mark.asyncio
    async def test_run_instances(
        self, client: MagicMock, ec2_provider: EC2Provider, template: InstanceTemplate,
    ) -> None:
        client.run_instances = AsyncMock(return_value={
            "Instances": [{
                "InstanceId": "i-1",
                "Placement": {"AvailabilityZone": "us-west-2a"},
                "State": {"Name": "pending"},
            }],
        })
        template = replace(template, num_ifaces=2, user_data=b"#!/bin/sh\necho hi\n")

        instances = await ec2_provider.create_instance(template, build_network_interfaces(template))

        assert [(i.instance_id, i.zone, i.state) for i in instances] == [("i-1", "us-west-2a", "pending")]
        request = client.run_instances.await_args.kwargs
        assert (request["MinCount"], request["MaxCount"]) == (1, 1)
        assert request["Placement"] == {"AvailabilityZone": "us-west-2a"}
        assert request["KeyName"] == "ops"
        assert base64.b64decode(request["UserData"]) == b"#!/bin/sh\necho hi\n"
        ifaces = request["NetworkInterfaces"]
        assert [i["DeviceIndex"] for i in ifaces] == [0, 1]
        assert [i["AssociatePublicIpAddress"] for i in ifaces] == [True, False]
        assert all(i["Groups"] == [template.security_group_id] for i in ifaces)

    @pytest.mark.asyncio
    async def test_run_instances_empty(
        self, client: MagicMock, ec2_provider: EC2Provider, template: InstanceTemplate,
    ) -> None:
        client.run_instances = AsyncMock(return_value={})
        assert await ec2_provider.create_instance(template, build_network_interfaces(template)) == []

    @pytest.mark.asyncio
    async def test_create_vpc_with_ipv6(self, client: MagicMock, ec2_provider: EC2Provider) -> None:
        client.create_vpc = AsyncMock(return_value={"Vpc": {"VpcId": "vpc-1"}})

        assert await ec2_provider.create_network("10.0.0.0/16", True, {"Name": "test"}) == "vpc-1"

        request = client.create_vpc.await_args.kwargs
        assert request["AmazonProvidedIpv6CidrBlock"] is True
        assert request["Ipv6CidrBlockNetworkBorderGroup"] == "us-west-2"
        assert request["TagSpecifications"] == tag_specifications("vpc", {"Name": "test"})

    @pytest.mark.asyncio
    async def test_create_vpc_without_id(self, client: MagicMock, ec2_provider: EC2Provider) -> None:
        client.create_vpc = AsyncMock(return_value={"Vpc": {}})

        with pytest.raises(ResponseShapeError, match="Vpc.VpcId"):
            await ec2_provider.create_network("10.0.0.0/16", True, {})

    @pytest.mark.asyncio
    async def test_create_subnet_without_id(self, client: MagicMock, ec2_provider: EC2Provider) -> None:
        client.create_subnet = AsyncMock(return_value={})
        assert await ec2_provider.create_subnet("vpc-1", "us-west-2a", "10.0.0.0/24", {}) is None

    @pytest.mark.asyncio
    async def test_ipv6_route(self, client: MagicMock, ec2_provider: EC2Provider) -> None:
        client.create_route = AsyncMock(return_value={"Return": True})

        await ec2_provider.create_route("rtb-1", "::/0", "igw-1")
        await ec2_provider.create_route("rtb-1", "0.0.0.0/0", "igw-1")

        v6, v4 = (c.kwargs for c in client.create_route.await_args_list)
        assert v6 == {"RouteTableId": "rtb-1", "GatewayId": "igw-1", "DestinationIpv6CidrBlock": "::/0"}
        assert v4 == {"RouteTableId": "rtb-1", "GatewayId": "igw-1", "DestinationCidrBlock": "0.0.0.0/0"}

    @pytest.mark.asyncio
    async def test_associate_returns_state(self, client: MagicMock, ec2_provider: EC2Provider) -> None:
        client.associate_route_table = AsyncMock(return_value={
            "AssociationId": "rtbassoc-1",
            "AssociationState": {"State": "associated"},
        })
        assert await ec2_provider.associate_route_table("rtb-1", "subnet-1") == "associated"

        client.associate_route_table = AsyncMock(return_value={"AssociationId": "rtbassoc-2"})
        assert await ec2_provider.associate_route_table("rtb-1", "subnet-2") is None

    @pytest.mark.asyncio
    async def test_list_associations_skips_main(self, client: MagicMock, ec2_provider: EC2Provider) -> None:
        client.describe_route_tables = AsyncMock(return_value={
            "RouteTables": [{
                "RouteTableId": "rtb-1",
                "Associations": [
                    {"RouteTableAssociationId": "rtbassoc-main", "Main": True},
                    {"RouteTableAssociationId": "rtbassoc-1", "Main": False, "SubnetId": "subnet-1"},
                    {"RouteTableAssociationId": "rtbassoc-2", "SubnetId": "subnet-2"},
                ],
            }],
        })

        assert await ec2_provider.list_associations("rtb-1") == ["rtbassoc-1", "rtbassoc-2"]

    def test_ingress_permissions(self) -> None:
        ssh, internal = ip_permissions(baseline_ingress("sg-1"))

        assert ssh["IpProtocol"] == "tcp"
        assert [r["CidrIp"] for r in ssh["IpRanges"]] == ["0.0.0.0/0"]
        assert [r["CidrIpv6"] for r in ssh["Ipv6Ranges"]] == ["::/0"]
        assert "UserIdGroupPairs" not in ssh
        assert internal["IpProtocol"] == "-1"
        assert [p["GroupId"] for p in internal["UserIdGroupPairs"]] == ["sg-1"]
        assert "IpRanges" not in internal


class TestWiring:
    def test_provider_satisfies_protocol(self, ec2_provider: EC2Provider) -> None:
        assert isinstance(ec2_provider, Provider)

    def test_injector_builds_provider(self) -> None:
        settings = Settings(region="eu-west-1")
        provider = Injector([EC2Module(settings)]).get(EC2Provider)

        assert provider.settings is settings
        assert isinstance(provider.ec2, EC2ClientFactory)


class TestClientSetupFailure:
    @pytest.mark.asyncio
    async def test_wrapped_as_transport_error(self, unreachable_provider: EC2Provider) -> None:
        with pytest.raises(TransportError) as exc_info:
            await unreachable_provider.delete_security_group("sg-1")

        assert exc_info.value.operation == "delete_security_group"
        assert isinstance(exc_info.value.__cause__, CredentialRetrievalError)

    @pytest.mark.asyncio
    async def test_teardown_visits_every_resource(self, unreachable_provider: EC2Provider) -> None:
        descriptor = CleanupDescriptor(
            network_id="vpc-1",
            gateway_id="igw-1",
            subnet_ids=("subnet-a", "subnet-b"),
            route_table_ids=("rtb-1",),
            security_group_ids=("sg-1",),
        )

        with pytest.raises(TeardownError) as exc_info:
            await teardown(unreachable_provider, descriptor)

        assert [f.resource for f in exc_info.value.failures] == [
            "security group",
            "gateway attachment",
            "gateway",
            "subnet",
            "subnet",
            "route table associations",
            "route table",
            "network",
        ]
        assert all(isinstance(f.error, TransportError) for f in exc_info.value.failures)

    @pytest.mark.asyncio
    async def test_launch_reports_launch_error(
        self, unreachable_provider: EC2Provider, template: InstanceTemplate,
    ) -> None:
        with pytest.raises(LaunchError) as exc_info:
            await launch(unreachable_provider, template, ["us-west-2a", "us-west-2b"], delay=0)

        assert exc_info.value.zones == ("us-west-2a", "us-west-2b")
