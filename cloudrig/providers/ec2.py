"""AWS EC2 provider backed by aioboto3.

Translates the provider protocol into EC2 API calls. ``ClientError`` becomes
:class:`ProviderError` with the EC2 error code as cause code; any other
botocore or socket failure becomes :class:`TransportError`.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError
from injector import inject
from loguru import logger

from cloudrig.config import Settings
from cloudrig.errors import ProviderError, ResponseShapeError, TransportError
from cloudrig.types import IngressRule, InstanceHandle, NetworkInterfaceSpec, Tags

from .clients import EC2ClientFactory

if TYPE_CHECKING:
    from cloudrig.templates import InstanceTemplate

log = logger.bind(component="ec2")


# =============================================================================
# Request Builders
# =============================================================================


def tag_specifications(resource_type: str, tags: Tags) -> list[dict[str, Any]]:
    return [
        {
            "ResourceType": resource_type,
            "Tags": [{"Key": k, "Value": v} for k, v in tags.items()],
        }
    ]


def interface_specifications(interfaces: Sequence[NetworkInterfaceSpec]) -> list[dict[str, Any]]:
    return [
        {
            "DeviceIndex": iface.device_index,
            "NetworkCardIndex": iface.device_index,
            "SubnetId": iface.subnet_id,
            "Groups": [iface.security_group_id],
            "AssociatePublicIpAddress": iface.public_ip,
            "DeleteOnTermination": iface.delete_on_termination,
        }
        for iface in interfaces
    ]


def ip_permissions(rules: Sequence[IngressRule]) -> list[dict[str, Any]]:
    permissions: list[dict[str, Any]] = []
    for rule in rules:
        perm: dict[str, Any] = {
            "IpProtocol": rule.protocol,
            "FromPort": rule.from_port,
            "ToPort": rule.to_port,
        }
        if rule.cidrs_v4:
            perm["IpRanges"] = [
                {"CidrIp": cidr, "Description": rule.description} for cidr in rule.cidrs_v4
            ]
        if rule.cidrs_v6:
            perm["Ipv6Ranges"] = [
                {"CidrIpv6": cidr, "Description": rule.description} for cidr in rule.cidrs_v6
            ]
        if rule.source_group_ids:
            perm["UserIdGroupPairs"] = [
                {"GroupId": gid, "Description": rule.description} for gid in rule.source_group_ids
            ]
        permissions.append(perm)
    return permissions


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Map botocore failures onto the cloudrig error taxonomy."""
    try:
        yield
    except ClientError as e:
        error: Mapping[str, Any] = e.response.get("Error", {})
        code = error.get("Code")
        message = error.get("Message") or str(e)
        log.debug("{op} failed with code={code}: {msg}", op=operation, code=code, msg=message)
        raise ProviderError(operation, message, code=code) from e
    except (BotoCoreError, OSError, asyncio.TimeoutError) as e:
        raise TransportError(operation, f"{type(e).__name__}: {e}") from e


def _require(response: Mapping[str, Any], operation: str, *path: str) -> str:
    node: Any = response
    for key in path:
        if not isinstance(node, Mapping) or node.get(key) is None:
            raise ResponseShapeError(operation, ".".join(path))
        node = node[key]
    return str(node)


# =============================================================================
# Provider
# =============================================================================


class EC2Provider:
    """Provider implementation for AWS EC2."""

    @inject
    def __init__(self, ec2: EC2ClientFactory, settings: Settings) -> None:
        self.ec2 = ec2
        self.settings = settings

    # -------------------------------------------------------------------------
    # Compute
    # -------------------------------------------------------------------------

    async def create_instance(
        self,
        template: InstanceTemplate,
        interfaces: Sequence[NetworkInterfaceSpec],
    ) -> list[InstanceHandle]:
        request: dict[str, Any] = {
            "ImageId": template.image_id,
            "InstanceType": template.instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "Placement": {"AvailabilityZone": template.zone},
            "NetworkInterfaces": interface_specifications(interfaces),
            "DisableApiTermination": False,
            "TagSpecifications": tag_specifications(
                "instance", {"project": template.project_tag},
            ),
            "MetadataOptions": {"HttpTokens": "required", "HttpEndpoint": "enabled"},
        }

        key_name = template.key_name or self.settings.key_name
        if key_name:
            request["KeyName"] = key_name

        profile_arn = template.instance_profile_arn or self.settings.instance_profile_arn
        if profile_arn:
            request["IamInstanceProfile"] = {"Arn": profile_arn}

        if template.user_data is not None:
            request["UserData"] = base64.b64encode(template.user_data).decode()

        with translate_errors("run_instances"):
            async with self.ec2() as ec2:
                response = await ec2.run_instances(**request)

        return [
            InstanceHandle(
                instance_id=inst["InstanceId"],
                zone=inst.get("Placement", {}).get("AvailabilityZone", template.zone),
                state=inst.get("State", {}).get("Name", "pending"),
            )
            for inst in response.get("Instances") or []
        ]

    async def terminate_instances(self, instance_ids: Sequence[str]) -> None:
        if not instance_ids:
            return

        with translate_errors("terminate_instances"):
            async with self.ec2() as ec2:
                await ec2.terminate_instances(InstanceIds=list(instance_ids))

    # -------------------------------------------------------------------------
    # Network
    # -------------------------------------------------------------------------

    async def create_network(self, cidr_v4: str, want_cidr_v6: bool, tags: Tags) -> str:
        request: dict[str, Any] = {
            "CidrBlock": cidr_v4,
            "TagSpecifications": tag_specifications("vpc", tags),
        }
        if want_cidr_v6:
            request["AmazonProvidedIpv6CidrBlock"] = True
            request["Ipv6CidrBlockNetworkBorderGroup"] = self.settings.border_group

        with translate_errors("create_vpc"):
            async with self.ec2() as ec2:
                response = await ec2.create_vpc(**request)
        return _require(response, "create_vpc", "Vpc", "VpcId")

    async def delete_network(self, network_id: str) -> None:
        with translate_errors("delete_vpc"):
            async with self.ec2() as ec2:
                await ec2.delete_vpc(VpcId=network_id)

    async def create_subnet(
        self,
        network_id: str,
        zone: str,
        cidr_v4: str,
        tags: Tags,
    ) -> str | None:
        with translate_errors("create_subnet"):
            async with self.ec2() as ec2:
                response = await ec2.create_subnet(
                    VpcId=network_id,
                    AvailabilityZone=zone,
                    CidrBlock=cidr_v4,
                    TagSpecifications=tag_specifications("subnet", tags),
                )
        subnet = response.get("Subnet") or {}
        return subnet.get("SubnetId")

    async def delete_subnet(self, subnet_id: str) -> None:
        with translate_errors("delete_subnet"):
            async with self.ec2() as ec2:
                await ec2.delete_subnet(SubnetId=subnet_id)

    # -------------------------------------------------------------------------
    # Gateway
    # -------------------------------------------------------------------------

    async def create_gateway(self, tags: Tags) -> str:
        with translate_errors("create_internet_gateway"):
            async with self.ec2() as ec2:
                response = await ec2.create_internet_gateway(
                    TagSpecifications=tag_specifications("internet-gateway", tags),
                )
        return _require(
            response, "create_internet_gateway", "InternetGateway", "InternetGatewayId",
        )

    async def attach_gateway(self, gateway_id: str, network_id: str) -> None:
        with translate_errors("attach_internet_gateway"):
            async with self.ec2() as ec2:
                await ec2.attach_internet_gateway(
                    InternetGatewayId=gateway_id, VpcId=network_id,
                )

    async def detach_gateway(self, gateway_id: str, network_id: str) -> None:
        with translate_errors("detach_internet_gateway"):
            async with self.ec2() as ec2:
                await ec2.detach_internet_gateway(
                    InternetGatewayId=gateway_id, VpcId=network_id,
                )

    async def delete_gateway(self, gateway_id: str) -> None:
        with translate_errors("delete_internet_gateway"):
            async with self.ec2() as ec2:
                await ec2.delete_internet_gateway(InternetGatewayId=gateway_id)

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    async def create_route_table(self, network_id: str, tags: Tags) -> str:
        with translate_errors("create_route_table"):
            async with self.ec2() as ec2:
                response = await ec2.create_route_table(
                    VpcId=network_id,
                    TagSpecifications=tag_specifications("route-table", tags),
                )
        return _require(response, "create_route_table", "RouteTable", "RouteTableId")

    async def create_route(self, table_id: str, destination: str, gateway_id: str) -> None:
        # IPv6 destinations go in a different request field
        field = "DestinationIpv6CidrBlock" if ":" in destination else "DestinationCidrBlock"
        with translate_errors("create_route"):
            async with self.ec2() as ec2:
                await ec2.create_route(
                    RouteTableId=table_id, GatewayId=gateway_id, **{field: destination},
                )

    async def associate_route_table(self, table_id: str, subnet_id: str) -> str | None:
        with translate_errors("associate_route_table"):
            async with self.ec2() as ec2:
                response = await ec2.associate_route_table(
                    RouteTableId=table_id, SubnetId=subnet_id,
                )
        state = response.get("AssociationState") or {}
        return state.get("State")

    async def list_associations(self, table_id: str) -> list[str]:
        with translate_errors("describe_route_tables"):
            async with self.ec2() as ec2:
                response = await ec2.describe_route_tables(RouteTableIds=[table_id])

        return [
            assoc["RouteTableAssociationId"]
            for table in response.get("RouteTables", [])
            for assoc in table.get("Associations", [])
            if assoc.get("RouteTableAssociationId") and not assoc.get("Main", False)
        ]

    async def disassociate_route_table(self, association_id: str) -> None:
        with translate_errors("disassociate_route_table"):
            async with self.ec2() as ec2:
                await ec2.disassociate_route_table(AssociationId=association_id)

    async def delete_route_table(self, table_id: str) -> None:
        with translate_errors("delete_route_table"):
            async with self.ec2() as ec2:
                await ec2.delete_route_table(RouteTableId=table_id)

    # -------------------------------------------------------------------------
    # Security Groups
    # -------------------------------------------------------------------------

    async def create_security_group(
        self,
        network_id: str,
        name: str,
        description: str,
        tags: Tags,
    ) -> str:
        with translate_errors("create_security_group"):
            async with self.ec2() as ec2:
                response = await ec2.create_security_group(
                    GroupName=name,
                    Description=description,
                    VpcId=network_id,
                    TagSpecifications=tag_specifications("security-group", tags),
                )
        return _require(response, "create_security_group", "GroupId")

    async def authorize_ingress(self, group_id: str, rules: Sequence[IngressRule]) -> None:
        with translate_errors("authorize_security_group_ingress"):
            async with self.ec2() as ec2:
                await ec2.authorize_security_group_ingress(
                    GroupId=group_id, IpPermissions=ip_permissions(rules),
                )

    async def delete_security_group(self, group_id: str) -> None:
        with translate_errors("delete_security_group"):
            async with self.ec2() as ec2:
                await ec2.delete_security_group(GroupId=group_id)


__all__ = [
    "EC2Provider",
    "interface_specifications",
    "ip_permissions",
    "tag_specifications",
    "translate_errors",
]
