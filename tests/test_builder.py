from __future__ import annotations

import json

import pytest

from package_extractor.builder import PackageBuilder, destination_for
from package_extractor.errors import AmbiguousVersion, InvalidReference, RegistryIOError
from package_extractor.layout import OCILayoutStore
from package_extractor.metadata import BUILDPACKAGE_METADATA_LABEL, LAYERS_METADATA_LABEL
from package_extractor.models import Stack
from package_extractor.reference import parse_reference

SOURCE = "registry.example.com/builder:base"

BUILDPACKS = {
    "io.example.node": {
        "1.2.0": {
            "order": [{"group": [{"id": "io.example.npm", "version": "0.9.0"}, {"id": "io.example.yarn", "optional": True}]}],
            "homepage": "https://example.com/node",
        }
    },
    "io.example.npm": {"0.9.0": {"stacks": [{"id": "io.stacks.bionic", "mixins": ["git"]}, {"id": "io.stacks.tiny"}]}},
    "io.example.yarn": {"1.0.0": {"stacks": [{"id": "io.stacks.bionic", "mixins": ["curl"]}]}},
    "io.example.java": {"5.0.0": {"stacks": [{"id": "io.stacks.bionic"}]}},
}

ORDER = [
    {"group": [{"id": "io.example.node", "version": "1.2.0"}]},
    {"group": [{"id": "io.example.java"}, {"id": "io.example.node"}]},
]


def test_extract_one_writes_buildpackage(layout_store: OCILayoutStore, push_builder) -> None:
    source = push_builder(SOURCE, BUILDPACKS, ORDER)
    builder = PackageBuilder(layout_store)

    result = builder.extract_one(SOURCE, "registry.example.com/packages/node", "io.example.node")

    assert result.id == "io.example.node"
    assert result.version == "1.2.0"
    assert result.tag == "1.2.0"
    assert result.description == "io.example.node@1.2.0"
    assert result.image == f"registry.example.com/packages/node@{result.digest}"
    assert result.stacks == [Stack(id="io.stacks.bionic", mixins=("curl", "git"))]

    written = layout_store.fetch(parse_reference("registry.example.com/packages/node"))
    assert written.digest() == result.digest
    tagged = layout_store.fetch(parse_reference("registry.example.com/packages/node:1.2.0"))
    assert tagged.digest() == result.digest

    layers = json.loads(written.label_value(LAYERS_METADATA_LABEL))
    assert sorted(layers) == ["io.example.node", "io.example.npm", "io.example.yarn"]
    assert written.diff_ids == sorted(
        (info["layerDiffID"] for versions in layers.values() for info in versions.values()), reverse=True
    )
    assert set(written.diff_ids) < set(source.diff_ids)

    summary = json.loads(written.label_value(BUILDPACKAGE_METADATA_LABEL))
    assert summary == {
        "id": "io.example.node",
        "version": "1.2.0",
        "homepage": "https://example.com/node",
        "stacks": [{"id": "io.stacks.bionic", "mixins": ["curl", "git"]}],
    }


def test_extract_one_is_reproducible(layout_store: OCILayoutStore, push_builder) -> None:
    push_builder(SOURCE, BUILDPACKS, ORDER)
    builder = PackageBuilder(layout_store)
    first = builder.extract_one(SOURCE, "registry.example.com/packages/a", "io.example.node", "1.2.0")
    second = builder.extract_one(SOURCE, "registry.example.com/packages/b", "io.example.node", "1.2.0")
    assert first.digest == second.digest


def test_extract_one_propagates_resolution_errors(layout_store: OCILayoutStore, push_builder) -> None:
    push_builder(SOURCE, {"io.example.a": {"1": {}, "2": {}}})
    builder = PackageBuilder(layout_store)
    with pytest.raises(AmbiguousVersion):
        builder.extract_one(SOURCE, "registry.example.com/packages/a", "io.example.a")
    assert layout_store.references() == [SOURCE]


def test_extract_one_rejects_bad_destination(layout_store: OCILayoutStore, push_builder) -> None:
    push_builder(SOURCE, BUILDPACKS)
    with pytest.raises(InvalidReference):
        PackageBuilder(layout_store).extract_one(SOURCE, "registry.example.com/Packages", "io.example.java")


def test_extract_one_missing_source(layout_store: OCILayoutStore) -> None:
    with pytest.raises(RegistryIOError):
        PackageBuilder(layout_store).extract_one(SOURCE, "registry.example.com/packages/x", "io.example.java")


def test_destination_for_strips_dots() -> None:
    assert destination_for("registry.example.com/packages:ignored", "io.example.node") == (
        "registry.example.com/packages/ioexamplenode"
    )


def test_extract_all_deduplicates_images(layout_store: OCILayoutStore, push_builder) -> None:
    push_builder(SOURCE, BUILDPACKS, ORDER)

    batch = PackageBuilder(layout_store).extract_all(SOURCE, "registry.example.com/packages")

    assert batch.source == SOURCE
    assert [result.description for result in batch.buildpackages] == [
        "io.example.node@1.2.0",
        "io.example.java@5.0.0",
    ]
    images = [result.image for result in batch.buildpackages]
    assert len(images) == len(set(images))
    assert images[0].startswith("registry.example.com/packages/ioexamplenode@sha256:")

    payload = batch.to_dict()
    assert payload["order"] == ORDER
    assert payload["buildpackages"][1]["stacks"] == [{"id": "io.stacks.bionic"}]
    assert "registry.example.com/packages/ioexamplejava:5.0.0" in layout_store.references()


def test_extract_all_stops_at_first_failure(layout_store: OCILayoutStore, push_builder) -> None:
    buildpacks = dict(BUILDPACKS, **{"io.example.multi": {"1": {}, "2": {}}})
    order = [{"group": [{"id": "io.example.java"}]}, {"group": [{"id": "io.example.multi"}, {"id": "io.example.node"}]}]
    push_builder(SOURCE, buildpacks, order)

    with pytest.raises(AmbiguousVersion):
        PackageBuilder(layout_store).extract_all(SOURCE, "registry.example.com/packages")

    references = layout_store.references()
    assert "registry.example.com/packages/ioexamplejava:latest" in references
    assert not any("ioexamplenode" in reference for reference in references)


def test_plan_reports_without_writing(layout_store: OCILayoutStore, push_builder) -> None:
    push_builder(SOURCE, BUILDPACKS)
    plan = PackageBuilder(layout_store).plan(SOURCE, "io.example.node")
    assert plan["version"] == "1.2.0"
    assert sorted(plan["buildpacks"]) == ["io.example.node", "io.example.npm", "io.example.yarn"]
    assert plan["layers"] == sorted(plan["layers"], reverse=True)
    assert plan["stacks"] == [{"id": "io.stacks.bionic", "mixins": ["curl", "git"]}]
    assert layout_store.references() == [SOURCE]
