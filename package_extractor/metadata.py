from __future__ import annotations

import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Tuple

from .errors import MetadataError
from .models import LayerInfo, OrderEntry, parse_order
from .store import Image

LAYERS_METADATA_LABEL = "io.buildpacks.buildpack.layers"
ORDER_LABEL = "io.buildpacks.buildpack.order"
BUILDPACKAGE_METADATA_LABEL = "io.buildpacks.buildpackage.metadata"


def read_label(image: Image, key: str) -> Any:
    """Decode the JSON value of label ``key`` on ``image``."""

    raw = image.label_value(key)
    if raw is None:
        raise MetadataError(f"image has no label {key}", context={"label": key})
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise MetadataError(f"label {key} is not valid JSON: {exc}", context={"label": key}) from exc


@dataclass(frozen=True)
class MetadataIndex:
    """Read-only view of a builder's layers label: id -> version -> LayerInfo."""

    entries: Mapping[str, Mapping[str, LayerInfo]]

    @classmethod
    def from_dict(cls, data: Any) -> "MetadataIndex":
        if not isinstance(data, Mapping):
            raise MetadataError(f"{LAYERS_METADATA_LABEL} must be an object")
        entries: Dict[str, Mapping[str, LayerInfo]] = {}
        for buildpack_id, versions in data.items():
            if not isinstance(versions, Mapping):
                raise MetadataError(
                    f"versions of {buildpack_id} must be an object",
                    context={"id": buildpack_id},
                )
            parsed: Dict[str, LayerInfo] = {}
            for version, info in versions.items():
                try:
                    parsed[version] = LayerInfo.from_dict(info)
                except MetadataError as exc:
                    raise MetadataError(
                        f"{buildpack_id}@{version}: {exc}",
                        context={"id": buildpack_id, "version": version},
                    ) from exc
            entries[buildpack_id] = MappingProxyType(parsed)
        return cls(entries=MappingProxyType(entries))

    @classmethod
    def from_image(cls, image: Image) -> "MetadataIndex":
        return cls.from_dict(read_label(image, LAYERS_METADATA_LABEL))

    def ids(self) -> List[str]:
        return sorted(self.entries)

    def versions(self, buildpack_id: str) -> Mapping[str, LayerInfo]:
        return self.entries[buildpack_id]

    def __contains__(self, buildpack_id: object) -> bool:
        return buildpack_id in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Tuple[str, str, LayerInfo]]:
        for buildpack_id in sorted(self.entries):
            versions = self.entries[buildpack_id]
            for version in sorted(versions):
                yield buildpack_id, version, versions[version]


def read_order(image: Image) -> Tuple[OrderEntry, ...]:
    """Parse the builder's top-level order label."""

    data = read_label(image, ORDER_LABEL)
    try:
        return parse_order(data)
    except MetadataError as exc:
        raise MetadataError(f"{ORDER_LABEL}: {exc}", context={"label": ORDER_LABEL}) from exc
