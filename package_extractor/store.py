"""Image-store contract consumed by the extraction core.

The core never talks to a registry directly. It fetches, assembles and
publishes images through an :class:`ImageStore`; transport, authentication
and content hashing all live behind this boundary.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from .reference import ImageReference


class Layer(Protocol):
    @property
    def diff_id(self) -> str:
        ...


class Image(Protocol):
    def label_value(self, key: str) -> Optional[bytes]:
        """Return the raw value of label ``key``, or ``None`` when absent."""
        ...

    def layer_by_diff_id(self, diff_id: str) -> Layer:
        ...

    def append_layers(self, *layers: Layer) -> "Image":
        ...

    def with_labels(self, labels: Mapping[str, Any]) -> "Image":
        """Return a copy carrying ``labels``; values are JSON-encoded by the store."""
        ...

    def digest(self) -> str:
        ...


class ImageStore(Protocol):
    def fetch(self, reference: ImageReference) -> Image:
        ...

    def new_empty_image(self) -> Image:
        ...

    def push(self, reference: ImageReference, image: Image) -> None:
        ...

    def tag(self, reference: ImageReference, image: Image) -> None:
        ...
