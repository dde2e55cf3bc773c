from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from .errors import MetadataError

BuildpackKey = Tuple[str, str]


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise MetadataError(f"{what} must be an object, got {type(data).__name__}")
    return data


def _require_list(data: Any, what: str) -> List[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise MetadataError(f"{what} must be a list, got {type(data).__name__}")
    return data


def _require_str(data: Mapping[str, Any], key: str, what: str, *, required: bool = True) -> str:
    value = data.get(key)
    if value is None:
        if required:
            raise MetadataError(f"{what} is missing required field '{key}'")
        return ""
    if not isinstance(value, str):
        raise MetadataError(f"{what} field '{key}' must be a string")
    return value


@dataclass(frozen=True)
class Stack:
    """Runtime stack compatibility: an id plus a set of mixins."""

    id: str
    mixins: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "Stack":
        data = _require_mapping(data, "stack")
        mixins = _require_list(data.get("mixins"), "stack mixins")
        if not all(isinstance(mixin, str) for mixin in mixins):
            raise MetadataError("stack mixins must be strings")
        return cls(id=_require_str(data, "id", "stack"), mixins=tuple(mixins))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id}
        if self.mixins:
            payload["mixins"] = list(self.mixins)
        return payload


@dataclass(frozen=True)
class BuildpackRef:
    id: str
    version: str = ""
    optional: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "BuildpackRef":
        data = _require_mapping(data, "buildpack reference")
        optional = data.get("optional", False)
        if not isinstance(optional, bool):
            raise MetadataError("buildpack reference field 'optional' must be a boolean")
        return cls(
            id=_require_str(data, "id", "buildpack reference"),
            version=_require_str(data, "version", "buildpack reference", required=False),
            optional=optional,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id}
        if self.version:
            payload["version"] = self.version
        if self.optional:
            payload["optional"] = True
        return payload


@dataclass(frozen=True)
class OrderEntry:
    """One group of buildpacks required together."""

    group: Tuple[BuildpackRef, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "OrderEntry":
        data = _require_mapping(data, "order entry")
        group = _require_list(data.get("group"), "order group")
        return cls(group=tuple(BuildpackRef.from_dict(ref) for ref in group))

    def to_dict(self) -> Dict[str, Any]:
        if not self.group:
            return {}
        return {"group": [ref.to_dict() for ref in self.group]}


def parse_order(data: Any) -> Tuple[OrderEntry, ...]:
    return tuple(OrderEntry.from_dict(entry) for entry in _require_list(data, "order"))


def order_to_list(order: Tuple[OrderEntry, ...]) -> List[Dict[str, Any]]:
    return [entry.to_dict() for entry in order]


@dataclass(frozen=True)
class LayerInfo:
    """Layer descriptor for one buildpack id/version inside a builder image."""

    api: str
    layer_diff_id: str
    stacks: Tuple[Stack, ...] = ()
    order: Tuple[OrderEntry, ...] = ()
    homepage: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "LayerInfo":
        data = _require_mapping(data, "layer info")
        stacks = _require_list(data.get("stacks"), "layer info stacks")
        return cls(
            api=_require_str(data, "api", "layer info", required=False),
            layer_diff_id=_require_str(data, "layerDiffID", "layer info"),
            stacks=tuple(Stack.from_dict(stack) for stack in stacks),
            order=parse_order(data.get("order")),
            homepage=_require_str(data, "homepage", "layer info", required=False),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"api": self.api}
        if self.stacks:
            payload["stacks"] = [stack.to_dict() for stack in self.stacks]
        if self.order:
            payload["order"] = order_to_list(self.order)
        payload["layerDiffID"] = self.layer_diff_id
        if self.homepage:
            payload["homepage"] = self.homepage
        return payload


@dataclass(frozen=True)
class BuildpackageMetadata:
    """Summary written to the io.buildpacks.buildpackage.metadata label."""

    id: str
    version: str = ""
    homepage: str = ""
    stacks: Tuple[Stack, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id}
        if self.version:
            payload["version"] = self.version
        if self.homepage:
            payload["homepage"] = self.homepage
        if self.stacks:
            payload["stacks"] = [stack.to_dict() for stack in self.stacks]
        return payload


@dataclass
class PackageResult:
    """Summary of one extracted buildpackage image."""

    image: str
    description: str
    id: str
    version: str
    digest: str
    stacks: List[Stack] = field(default_factory=list)
    tag: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image": self.image,
            "description": self.description,
            "id": self.id,
            "version": self.version,
            "digest": self.digest,
            "stacks": [stack.to_dict() for stack in self.stacks],
            "tag": self.tag,
        }


@dataclass
class BatchResult:
    """Buildpackages extracted from every top-level buildpack of a builder."""

    source: str
    order: Tuple[OrderEntry, ...] = ()
    buildpackages: List[PackageResult] = field(default_factory=list)

    def add(self, result: PackageResult) -> bool:
        """Record ``result`` unless an entry with the same image is already present."""
        if any(existing.image == result.image for existing in self.buildpackages):
            return False
        self.buildpackages.append(result)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buildpackages": [result.to_dict() for result in self.buildpackages],
            "order": order_to_list(self.order),
            "source": self.source,
        }
