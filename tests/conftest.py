from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from package_extractor.layout import LayoutImage, OCILayoutStore
from package_extractor.metadata import LAYERS_METADATA_LABEL, ORDER_LABEL
from package_extractor.reference import parse_reference

BuilderFactory = Callable[..., LayoutImage]


@pytest.fixture
def layout_store(tmp_path: Path) -> OCILayoutStore:
    return OCILayoutStore.open(tmp_path / "layout")


@pytest.fixture
def push_builder(layout_store: OCILayoutStore) -> BuilderFactory:
    """Push a builder image with one layer per buildpack, filling in each layerDiffID."""

    def _push(
        reference: str,
        buildpacks: Dict[str, Dict[str, Dict[str, Any]]],
        order: Optional[List[Dict[str, Any]]] = None,
    ) -> LayoutImage:
        metadata = copy.deepcopy(buildpacks)
        image = layout_store.new_empty_image()
        for buildpack_id, versions in sorted(metadata.items()):
            for version, info in sorted(versions.items()):
                layer = layout_store.add_layer(f"{buildpack_id}@{version}".encode("utf-8"))
                info["layerDiffID"] = layer.diff_id
                info.setdefault("api", "0.2")
                image = image.append_layers(layer)

        labels: Dict[str, Any] = {LAYERS_METADATA_LABEL: metadata}
        if order is not None:
            labels[ORDER_LABEL] = order
        image = image.with_labels(labels)
        layout_store.push(parse_reference(reference), image)
        return image

    return _push
