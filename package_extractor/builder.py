from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from .layers import build_image, order_layers
from .metadata import (
    BUILDPACKAGE_METADATA_LABEL,
    LAYERS_METADATA_LABEL,
    MetadataIndex,
    read_order,
)
from .models import BatchResult, BuildpackageMetadata, PackageResult
from .reference import parse_reference
from .resolver import resolve
from .stacks import merge_stacks
from .store import ImageStore

logger = logging.getLogger(__name__)


def destination_for(dest_prefix: str, buildpack_id: str) -> str:
    """Repository a top-level buildpack is published to during batch extraction."""

    prefix = parse_reference(dest_prefix)
    return prefix.child(buildpack_id.replace(".", "")).context


@dataclass
class PackageBuilder:
    """Extracts buildpackages from builder images held in an image store."""

    store: ImageStore

    def plan(self, source: str, buildpack_id: str, version: str = "") -> Dict[str, Any]:
        """Resolve ``buildpack_id`` without writing anything."""

        index = MetadataIndex.from_image(self.store.fetch(parse_reference(source)))
        resolved, version = resolve(index, buildpack_id, version)
        return {
            "id": buildpack_id,
            "version": version,
            "stacks": [stack.to_dict() for stack in merge_stacks(resolved)],
            "layers": order_layers(resolved),
            "buildpacks": resolved.to_dict(),
        }

    def extract_one(self, source: str, destination: str, buildpack_id: str, version: str = "") -> PackageResult:
        source_ref = parse_reference(source)
        destination_ref = parse_reference(destination)

        image = self.store.fetch(source_ref)
        index = MetadataIndex.from_image(image)
        resolved, version = resolve(index, buildpack_id, version)
        stacks = merge_stacks(resolved)

        package = build_image(self.store, image, order_layers(resolved))
        package = package.with_labels(
            {
                LAYERS_METADATA_LABEL: resolved.to_dict(),
                BUILDPACKAGE_METADATA_LABEL: BuildpackageMetadata(
                    id=buildpack_id,
                    version=version,
                    homepage=resolved.get(buildpack_id, version).homepage,
                    stacks=tuple(stacks),
                ).to_dict(),
            }
        )

        self.store.push(destination_ref, package)
        self.store.tag(destination_ref.with_tag(version), package)
        digest = package.digest()

        description = f"{buildpack_id}@{version}"
        result = f"{destination}@{digest}"
        logger.info("successfully wrote %s to %s", description, result)

        return PackageResult(
            image=result,
            description=description,
            id=buildpack_id,
            version=version,
            digest=digest,
            stacks=stacks,
            tag=version,
        )

    def extract_all(self, source: str, dest_prefix: str) -> BatchResult:
        image = self.store.fetch(parse_reference(source))
        results = BatchResult(source=source, order=read_order(image))

        for entry in results.order:
            for ref in entry.group:
                destination = destination_for(dest_prefix, ref.id)
                package = self.extract_one(source, destination, ref.id)
                if not results.add(package):
                    logger.debug("skipping duplicate buildpackage %s", package.image)
        return results
