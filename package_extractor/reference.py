from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional

from .errors import InvalidReference

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"

_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-fA-F0-9]{32,}$")
_REGISTRY_RE = re.compile(r"^[a-zA-Z0-9.-]+(?::[0-9]+)?$")


@dataclass(frozen=True)
class ImageReference:
    """A parsed ``registry/repository[:tag][@digest]`` image reference."""

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    @property
    def context(self) -> str:
        return f"{self.registry}/{self.repository}"

    def with_tag(self, tag: str) -> "ImageReference":
        if not _TAG_RE.match(tag):
            raise InvalidReference(f"{self.context}:{tag}", f"invalid tag {tag!r}")
        return replace(self, tag=tag, digest=None)

    def with_digest(self, digest: str) -> "ImageReference":
        if not _DIGEST_RE.match(digest):
            raise InvalidReference(f"{self.context}@{digest}", f"invalid digest {digest!r}")
        return replace(self, tag=None, digest=digest)

    def child(self, name: str) -> "ImageReference":
        """Return the reference of repository ``<this repository>/<name>``."""
        return parse_reference(f"{self.context}/{name}")

    def __str__(self) -> str:
        text = self.context
        if self.tag:
            text += f":{self.tag}"
        if self.digest:
            text += f"@{self.digest}"
        return text


def _looks_like_registry(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


def parse_reference(text: str) -> ImageReference:
    """Parse an image reference, applying docker defaults for registry and tag."""

    if not text or text != text.strip():
        raise InvalidReference(text, "reference must be a non-empty string without whitespace")

    remainder = text
    digest: Optional[str] = None
    if "@" in remainder:
        remainder, digest = remainder.split("@", 1)
        if not _DIGEST_RE.match(digest):
            raise InvalidReference(text, f"invalid digest {digest!r}")

    tag: Optional[str] = None
    last_slash = remainder.rfind("/")
    last_colon = remainder.rfind(":")
    if last_colon > last_slash:
        remainder, tag = remainder[:last_colon], remainder[last_colon + 1 :]
        if not _TAG_RE.match(tag):
            raise InvalidReference(text, f"invalid tag {tag!r}")

    components = remainder.split("/")
    if len(components) > 1 and _looks_like_registry(components[0]):
        registry = components[0]
        path = components[1:]
        if not _REGISTRY_RE.match(registry):
            raise InvalidReference(text, f"invalid registry {registry!r}")
    else:
        registry = DEFAULT_REGISTRY
        path = components
        if len(path) == 1:
            path = ["library", *path]

    for component in path:
        if not _COMPONENT_RE.match(component):
            raise InvalidReference(text, f"invalid repository component {component!r}")

    if tag is None and digest is None:
        tag = DEFAULT_TAG
    return ImageReference(registry=registry, repository="/".join(path), tag=tag, digest=digest)
