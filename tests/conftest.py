from __future__ import annotations

import pytest

from cloudrig.templates import InstanceTemplate
from tests.fakes import FakeProvider


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def template() -> InstanceTemplate:
    return InstanceTemplate(
        zone="us-west-2a",
        image_id="ami-07bff6261f14c3a45",
        instance_type="t2.micro",
        subnet_id="subnet-005f41c66eb78bc89",
        security_group_id="sg-0fa33c632d08f14ea",
        project_tag="testing",
    )
