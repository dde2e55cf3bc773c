"""Image store backed by an OCI image-layout directory.

Blobs are content addressed under ``blobs/<algorithm>/<hex>`` and shared by
every image in the layout, so copying a layer between images only copies
its descriptor. Image names are kept in ``index.json`` as
``org.opencontainers.image.ref.name`` annotations holding the full
reference string.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import RegistryIOError
from .reference import ImageReference, parse_reference
from .utils import canonical_json, dump_json, ensure_directory, sha256_digest

MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
CONFIG_MEDIA_TYPE = "application/vnd.oci.image.config.v1+json"
LAYER_MEDIA_TYPE = "application/vnd.oci.image.layer.v1.tar"
REF_NAME_ANNOTATION = "org.opencontainers.image.ref.name"


def _empty_config() -> Dict[str, Any]:
    # no "created" field: identical content always hashes to the same digest
    return {
        "architecture": "amd64",
        "os": "linux",
        "config": {},
        "rootfs": {"type": "layers", "diff_ids": []},
    }


@dataclass(frozen=True)
class LayoutLayer:
    diff_id: str
    digest: str
    size: int
    media_type: str = LAYER_MEDIA_TYPE

    def descriptor(self) -> Dict[str, Any]:
        return {"mediaType": self.media_type, "digest": self.digest, "size": self.size}


@dataclass(frozen=True, eq=False)
class LayoutImage:
    store: "OCILayoutStore"
    config: Dict[str, Any] = field(default_factory=_empty_config)
    layers: Tuple[LayoutLayer, ...] = ()

    @property
    def labels(self) -> Dict[str, str]:
        return dict(self.config.get("config", {}).get("Labels") or {})

    @property
    def diff_ids(self) -> List[str]:
        return [layer.diff_id for layer in self.layers]

    def label_value(self, key: str) -> Optional[bytes]:
        value = self.labels.get(key)
        return value.encode("utf-8") if value is not None else None

    def layer_by_diff_id(self, diff_id: str) -> LayoutLayer:
        for layer in self.layers:
            if layer.diff_id == diff_id:
                return layer
        raise RegistryIOError(f"image has no layer with diff id {diff_id}", operation="layer")

    def append_layers(self, *layers: LayoutLayer) -> "LayoutImage":
        config = copy.deepcopy(self.config)
        config["rootfs"]["diff_ids"].extend(layer.diff_id for layer in layers)
        return LayoutImage(store=self.store, config=config, layers=self.layers + tuple(layers))

    def with_labels(self, labels: Mapping[str, Any]) -> "LayoutImage":
        config = copy.deepcopy(self.config)
        current = config.setdefault("config", {}).get("Labels") or {}
        current.update({key: json.dumps(value) for key, value in labels.items()})
        config["config"]["Labels"] = current
        return LayoutImage(store=self.store, config=config, layers=self.layers)

    def config_bytes(self) -> bytes:
        return canonical_json(self.config)

    def manifest(self) -> Dict[str, Any]:
        config_bytes = self.config_bytes()
        return {
            "schemaVersion": 2,
            "mediaType": MANIFEST_MEDIA_TYPE,
            "config": {
                "mediaType": CONFIG_MEDIA_TYPE,
                "digest": sha256_digest(config_bytes),
                "size": len(config_bytes),
            },
            "layers": [layer.descriptor() for layer in self.layers],
        }

    def manifest_bytes(self) -> bytes:
        return canonical_json(self.manifest())

    def digest(self) -> str:
        return sha256_digest(self.manifest_bytes())


@dataclass
class OCILayoutStore:
    """Reads and writes images in an OCI image-layout directory."""

    root: Path

    def __post_init__(self) -> None:
        self.root = ensure_directory(self.root)
        ensure_directory(self.root / "blobs" / "sha256")
        if not (self.root / "oci-layout").exists():
            dump_json(self.root / "oci-layout", {"imageLayoutVersion": "1.0.0"})
        if not self.index_path.exists():
            dump_json(self.index_path, {"schemaVersion": 2, "manifests": []})

    @classmethod
    def open(cls, path: str | Path) -> "OCILayoutStore":
        return cls(root=Path(path))

    @property
    def index_path(self) -> Path:
        return self.root / "index.json"

    def blob_path(self, digest: str) -> Path:
        algorithm, _, hex_digest = digest.partition(":")
        return self.root / "blobs" / algorithm / hex_digest

    def has_blob(self, digest: str) -> bool:
        return self.blob_path(digest).exists()

    def write_blob(self, data: bytes) -> Tuple[str, int]:
        digest = sha256_digest(data)
        path = self.blob_path(digest)
        if not path.exists():
            tmp_path = path.with_name(path.name + ".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(path)
        return digest, len(data)

    def read_blob(self, digest: str) -> bytes:
        try:
            return self.blob_path(digest).read_bytes()
        except FileNotFoundError as exc:
            raise RegistryIOError(f"blob {digest} not found in {self.root}", operation="blob") from exc

    def add_layer(self, content: bytes) -> LayoutLayer:
        """Store an uncompressed tar layer and return its descriptor."""

        digest, size = self.write_blob(content)
        return LayoutLayer(diff_id=digest, digest=digest, size=size)

    def _manifests(self) -> List[Dict[str, Any]]:
        try:
            index = json.loads(self.index_path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise RegistryIOError(f"cannot read {self.index_path}: {exc}", operation="index") from exc
        return list(index.get("manifests", []))

    def references(self) -> List[str]:
        return sorted(
            entry.get("annotations", {}).get(REF_NAME_ANNOTATION, "")
            for entry in self._manifests()
            if entry.get("annotations", {}).get(REF_NAME_ANNOTATION)
        )

    def _find(self, reference: ImageReference) -> Dict[str, Any]:
        name = str(reference)
        for entry in self._manifests():
            ref_name = entry.get("annotations", {}).get(REF_NAME_ANNOTATION, "")
            if reference.digest:
                if (
                    ref_name
                    and entry.get("digest") == reference.digest
                    and parse_reference(ref_name).context == reference.context
                ):
                    return entry
            elif ref_name == name:
                return entry
        raise RegistryIOError(f"image {name} not found in {self.root}", operation="fetch", reference=name)

    def fetch(self, reference: ImageReference) -> LayoutImage:
        entry = self._find(reference)
        try:
            manifest = json.loads(self.read_blob(entry["digest"]))
            config = json.loads(self.read_blob(manifest["config"]["digest"]))
            diff_ids = config.get("rootfs", {}).get("diff_ids", [])
            descriptors = manifest.get("layers", [])
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as exc:
            raise RegistryIOError(
                f"image {reference} has a corrupt manifest or config: {exc}",
                operation="fetch",
                reference=str(reference),
            ) from exc
        if len(diff_ids) != len(descriptors):
            raise RegistryIOError(
                f"image {reference} lists {len(descriptors)} layers but {len(diff_ids)} diff ids",
                operation="fetch",
                reference=str(reference),
            )
        layers = tuple(
            LayoutLayer(
                diff_id=diff_id,
                digest=descriptor["digest"],
                size=descriptor.get("size", 0),
                media_type=descriptor.get("mediaType", LAYER_MEDIA_TYPE),
            )
            for diff_id, descriptor in zip(diff_ids, descriptors)
        )
        return LayoutImage(store=self, config=config, layers=layers)

    def new_empty_image(self) -> LayoutImage:
        return LayoutImage(store=self)

    def push(self, reference: ImageReference, image: LayoutImage) -> None:
        for layer in image.layers:
            if not self.has_blob(layer.digest):
                raise RegistryIOError(
                    f"layer blob {layer.digest} is missing from {self.root}",
                    operation="push",
                    reference=str(reference),
                )
        self.write_blob(image.config_bytes())
        digest, size = self.write_blob(image.manifest_bytes())
        self._record(reference, digest, size)

    def tag(self, reference: ImageReference, image: LayoutImage) -> None:
        digest = image.digest()
        if not self.has_blob(digest):
            raise RegistryIOError(
                f"cannot tag {reference}: manifest {digest} has not been pushed",
                operation="tag",
                reference=str(reference),
            )
        self._record(reference, digest, len(image.manifest_bytes()))

    def _record(self, reference: ImageReference, digest: str, size: int) -> None:
        name = str(reference)
        manifests = [
            entry
            for entry in self._manifests()
            if entry.get("annotations", {}).get(REF_NAME_ANNOTATION) != name
        ]
        manifests.append(
            {
                "mediaType": MANIFEST_MEDIA_TYPE,
                "digest": digest,
                "size": size,
                "annotations": {REF_NAME_ANNOTATION: name},
            }
        )
        dump_json(self.index_path, {"schemaVersion": 2, "manifests": manifests})
