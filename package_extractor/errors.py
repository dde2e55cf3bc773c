from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence


class ExtractorError(Exception):
    """Base exception for buildpackage extraction."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = dict(context) if context is not None else {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ConfigError(ExtractorError, ValueError):
    """Raised when the extraction configuration is incomplete or unreadable."""


class MetadataError(ExtractorError, ValueError):
    """Raised when an image label is missing or does not match its schema."""


class InvalidReference(ExtractorError, ValueError):
    """Raised for malformed image reference strings."""

    def __init__(self, reference: str, reason: str) -> None:
        super().__init__(
            f"invalid image reference {reference!r}: {reason}",
            context={"reference": reference},
        )
        self.reference = reference


class RegistryIOError(ExtractorError):
    """Raised when the image store cannot fetch, write or tag an image."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        reference: Optional[str] = None,
    ) -> None:
        super().__init__(message, context={"operation": operation, "reference": reference})
        self.operation = operation
        self.reference = reference


class ResolutionError(ExtractorError):
    """Base class for failures while resolving a buildpack's dependencies."""

    def required_by(self, path: Sequence[str]) -> "ResolutionError":
        """Name the buildpacks whose order led to this failure, innermost last."""
        self.context["required_by"] = path[-1]
        self.context["path"] = list(path)
        self.args = (f"{self.args[0]} (required by {path[-1]})",)
        return self


class UnknownBuildpack(ResolutionError):
    def __init__(self, buildpack_id: str, available: Iterable[str]) -> None:
        self.buildpack_id = buildpack_id
        self.available = sorted(available)
        super().__init__(
            f"could not find {buildpack_id}, options: {self.available}",
            context={"id": buildpack_id},
        )


class UnknownVersion(ResolutionError):
    def __init__(self, buildpack_id: str, version: str, available: Iterable[str]) -> None:
        self.buildpack_id = buildpack_id
        self.version = version
        self.available = [f"{buildpack_id}@{v}" for v in sorted(available)]
        target = f"{buildpack_id}@{version}" if version else f"any version of {buildpack_id}"
        super().__init__(
            f"could not find {target}, options: {self.available}",
            context={"id": buildpack_id, "version": version},
        )


class AmbiguousVersion(ResolutionError):
    def __init__(self, buildpack_id: str, available: Iterable[str]) -> None:
        self.buildpack_id = buildpack_id
        self.available = sorted(available)
        super().__init__(
            f"picking version for buildpack {buildpack_id}: more than one version available "
            f"{self.available}, specify one explicitly",
            context={"id": buildpack_id},
        )


class CyclicOrder(ResolutionError):
    """Raised when nested order metadata refers back to a buildpack being expanded."""

    def __init__(self, path: Sequence[str]) -> None:
        self.path = list(path)
        super().__init__(
            "cyclic buildpack order: " + " -> ".join(self.path),
            context={"path": self.path},
        )
