from __future__ import annotations

import pytest

from package_extractor.errors import InvalidReference
from package_extractor.reference import parse_reference

DIGEST = "sha256:" + "ab" * 32


def test_parse_reference_applies_docker_defaults() -> None:
    reference = parse_reference("builder")
    assert reference.registry == "index.docker.io"
    assert reference.repository == "library/builder"
    assert reference.tag == "latest"
    assert str(reference) == "index.docker.io/library/builder:latest"


def test_parse_reference_with_registry_port_and_tag() -> None:
    reference = parse_reference("localhost:5000/team/builder:base-1.2")
    assert reference.registry == "localhost:5000"
    assert reference.repository == "team/builder"
    assert reference.tag == "base-1.2"
    assert reference.context == "localhost:5000/team/builder"


def test_parse_reference_without_registry_keeps_path() -> None:
    reference = parse_reference("paketobuildpacks/builder:full")
    assert reference.context == "index.docker.io/paketobuildpacks/builder"


def test_parse_reference_with_digest_has_no_default_tag() -> None:
    reference = parse_reference(f"gcr.io/project/builder@{DIGEST}")
    assert reference.tag is None
    assert reference.digest == DIGEST
    assert str(reference) == f"gcr.io/project/builder@{DIGEST}"


@pytest.mark.parametrize(
    "text",
    ["", " builder", "Registry.example.com/Upper", "gcr.io/project/builder@sha256:xyz", "builder:bad tag", "gcr.io//x"],
)
def test_parse_reference_rejects_malformed(text: str) -> None:
    with pytest.raises(InvalidReference):
        parse_reference(text)


def test_with_tag_and_child() -> None:
    reference = parse_reference("registry.example.com/buildpacks:latest")
    assert str(reference.with_tag("1.0.3")) == "registry.example.com/buildpacks:1.0.3"
    assert reference.child("paketo-buildpacks/java").context == "registry.example.com/buildpacks/paketo-buildpacks/java"
    with pytest.raises(InvalidReference):
        reference.with_tag("not/a/tag")
