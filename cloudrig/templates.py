"""Instance and cluster templates.

Immutable requests describing what to launch. Both expose ``validate()``,
which every entry point calls before touching the provider.

Example:
    >>> template = InstanceTemplate(
    ...     zone="us-west-2a",
    ...     image_id="ami-0c57248507328e2de",
    ...     instance_type="g5.2xlarge",
    ...     subnet_id="subnet-005f41c66eb78bc89",
    ...     security_group_id="sg-0fa33c632d08f14ea",
    ...     num_ifaces=4,
    ... )
    >>> template.validate()
"""

from __future__ import annotations

from dataclasses import dataclass

from .constants import DEFAULT_PROJECT_TAG, MAX_SHARED_VOLUME_ATTACHMENTS
from .errors import ValidationError


@dataclass(frozen=True, slots=True)
class InstanceTemplate:
    """Request describing a single instance.

    Args:
        zone: Availability zone to launch in.
        image_id: Machine image (AMI) id.
        instance_type: Instance size/class, e.g. ``g5.2xlarge``.
        subnet_id: Subnet every interface joins.
        security_group_id: Security group every interface joins.
        num_ifaces: Number of network interfaces. Must be at least 1.
        use_efa: Request accelerated (EFA) interfaces. Not supported yet.
        user_data: Opaque boot payload, sent base64-encoded.
        project_tag: Value of the ``project`` tag on the instance.
        key_name: Optional SSH key pair name.
        instance_profile_arn: Optional IAM instance profile.
    """

    zone: str
    image_id: str
    instance_type: str
    subnet_id: str
    security_group_id: str
    num_ifaces: int = 1
    use_efa: bool = False
    user_data: bytes | None = None
    project_tag: str = DEFAULT_PROJECT_TAG
    key_name: str | None = None
    instance_profile_arn: str | None = None

    def validate(self) -> None:
        if self.num_ifaces < 1:
            raise ValidationError(f"num_ifaces must be at least 1, got {self.num_ifaces}")
        if self.use_efa:
            raise ValidationError("EFA network interfaces are not supported yet")


@dataclass(frozen=True, slots=True)
class ClusterTemplate:
    """Request describing a group of identical instances.

    Args:
        name: Cluster name, also used to name its network.
        num_instances: Number of instances to launch.
        instance_template: Template shared by every instance.
        attach_shared_ebs: Attach one multi-attach block volume to every instance.
        shared_ebs_volume_size: Size of the shared volume in GiB.
        project_tag: Must match ``instance_template.project_tag``.
    """

    name: str
    num_instances: int
    instance_template: InstanceTemplate
    attach_shared_ebs: bool = False
    shared_ebs_volume_size: int | None = None
    project_tag: str = DEFAULT_PROJECT_TAG

    def validate(self) -> None:
        """Check cluster invariants, then the shared instance template.

        Raises:
            ValidationError: If any invariant does not hold.
        """
        if self.num_instances < 1:
            raise ValidationError("Number of instances must be at least 1")
        if self.attach_shared_ebs and self.num_instances > MAX_SHARED_VOLUME_ATTACHMENTS:
            raise ValidationError(
                f"Cannot attach a shared volume to more than "
                f"{MAX_SHARED_VOLUME_ATTACHMENTS} instances (got {self.num_instances})"
            )
        if self.project_tag != self.instance_template.project_tag:
            raise ValidationError(
                f"Cluster project tag {self.project_tag!r} does not match "
                f"instance template project tag {self.instance_template.project_tag!r}"
            )
        if self.attach_shared_ebs and self.shared_ebs_volume_size is None:
            raise ValidationError("A shared volume size is required when attach_shared_ebs is set")
        self.instance_template.validate()


__all__ = ["ClusterTemplate", "InstanceTemplate"]
