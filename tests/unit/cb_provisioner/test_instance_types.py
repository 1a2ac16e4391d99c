import pytest

from cb_provisioner.models.types import (
    Architecture,
    QuotaLimit,
    detect_architecture,
    instance_family,
    instance_generation,
    is_specialized,
)

pytestmark = pytest.mark.unit_provisioner


@pytest.mark.parametrize(
    "instance_type, expected",
    [
        ("m7i.large", Architecture.INTEL),
        ("c6in.2xlarge", Architecture.INTEL),
        ("m7a.xlarge", Architecture.AMD),
        ("r6a.large", Architecture.AMD),
        ("m7g.large", Architecture.GRAVITON),
        ("c7gn.4xlarge", Architecture.GRAVITON),
        ("g5.xlarge", Architecture.INTEL),
    ],
)
def test_detect_architecture(instance_type, expected) -> None:
    assert detect_architecture(instance_type) is expected


def test_family_and_generation() -> None:
    assert instance_family("c7gn.4xlarge") == "c7gn"
    assert instance_generation("c7gn.4xlarge") == 7
    assert instance_generation("weird") is None


def test_specialized_families() -> None:
    assert is_specialized("p4d.24xlarge")
    assert is_specialized("inf2.xlarge")
    assert not is_specialized("m7g.large")


def test_quota_limit_family_override() -> None:
    limit = QuotaLimit(max_per_family=4, family_overrides={"m7i": 2})
    assert limit.family_ceiling("m7i") == 2
    assert limit.family_ceiling("c7i") == 4
    assert Architecture.GRAVITON.image_arch == "arm64"
