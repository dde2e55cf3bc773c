from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple

from .errors import AmbiguousVersion, CyclicOrder, ResolutionError, UnknownBuildpack, UnknownVersion
from .metadata import MetadataIndex
from .models import BuildpackKey, BuildpackRef, LayerInfo

logger = logging.getLogger(__name__)


class ResolvedSet:
    """Transitive closure of one requested buildpack: id -> version -> LayerInfo."""

    def __init__(self, entries: Mapping[str, Mapping[str, LayerInfo]]) -> None:
        self._entries = MappingProxyType(
            {buildpack_id: MappingProxyType(dict(versions)) for buildpack_id, versions in entries.items()}
        )

    @property
    def entries(self) -> Mapping[str, Mapping[str, LayerInfo]]:
        return self._entries

    def keys(self) -> List[BuildpackKey]:
        return sorted(
            (buildpack_id, version)
            for buildpack_id, versions in self._entries.items()
            for version in versions
        )

    def infos(self) -> List[LayerInfo]:
        return [self._entries[buildpack_id][version] for buildpack_id, version in self.keys()]

    def get(self, buildpack_id: str, version: str) -> LayerInfo:
        return self._entries[buildpack_id][version]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        buildpack_id, version = key
        return version in self._entries.get(buildpack_id, {})

    def __iter__(self) -> Iterator[BuildpackKey]:
        return iter(self.keys())

    def __len__(self) -> int:
        return sum(len(versions) for versions in self._entries.values())

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Layers-metadata label content restricted to this set, in sorted key order."""
        return {
            buildpack_id: {
                version: self._entries[buildpack_id][version].to_dict()
                for version in sorted(self._entries[buildpack_id])
            }
            for buildpack_id in sorted(self._entries)
        }


def pick_version(index: MetadataIndex, buildpack_id: str, version: str = "") -> str:
    """Return the effective version of ``buildpack_id``: explicit, or the only one available."""

    if buildpack_id not in index:
        raise UnknownBuildpack(buildpack_id, index.ids())
    versions = index.versions(buildpack_id)
    if not version:
        if not versions:
            raise UnknownVersion(buildpack_id, version, versions)
        if len(versions) > 1:
            raise AmbiguousVersion(buildpack_id, versions)
        (version,) = versions
    if version not in versions:
        raise UnknownVersion(buildpack_id, version, versions)
    return version


class _Resolution:
    """Accumulator for one resolution; ``path`` holds the buildpacks currently being expanded."""

    def __init__(self, index: MetadataIndex) -> None:
        self.index = index
        self.entries: Dict[str, Dict[str, LayerInfo]] = {}
        self.expanded: Set[BuildpackKey] = set()
        self.path: List[BuildpackKey] = []

    def _path_names(self) -> List[str]:
        return [f"{bp_id}@{bp_version}" for bp_id, bp_version in self.path]

    def _enter(self, buildpack_id: str, version: str) -> Tuple[BuildpackKey, Optional[Iterator[BuildpackRef]]]:
        """Record one buildpack; returns its key and its order refs, or ``None`` if already expanded."""

        try:
            version = pick_version(self.index, buildpack_id, version)
        except ResolutionError as exc:
            if self.path:
                exc.required_by(self._path_names())
            raise
        key = (buildpack_id, version)
        if key in self.path:
            cycle = self.path[self.path.index(key) :] + [key]
            raise CyclicOrder([f"{bp_id}@{bp_version}" for bp_id, bp_version in cycle])
        if key in self.expanded:
            return key, None

        info = self.index.versions(buildpack_id)[version]
        self.entries.setdefault(buildpack_id, {})[version] = info
        self.expanded.add(key)
        return key, (ref for entry in info.order for ref in entry.group)

    def visit(self, buildpack_id: str, version: str) -> str:
        key, refs = self._enter(buildpack_id, version)
        stack: List[Iterator[BuildpackRef]] = []
        if refs is not None:
            self.path.append(key)
            stack.append(refs)

        while stack:
            ref = next(stack[-1], None)
            if ref is None:
                stack.pop()
                self.path.pop()
                continue
            parent_id, parent_version = self.path[-1]
            logger.debug("resolving %s@%s required by %s@%s", ref.id, ref.version or "*", parent_id, parent_version)
            child, child_refs = self._enter(ref.id, ref.version)
            if child_refs is not None:
                self.path.append(child)
                stack.append(child_refs)
        return key[1]


def resolve(index: MetadataIndex, buildpack_id: str, version: str = "") -> Tuple[ResolvedSet, str]:
    """Resolve ``buildpack_id`` and everything its nested order requires.

    Returns the resolved set together with the effective version of the
    requested buildpack. Raises ``UnknownBuildpack``, ``AmbiguousVersion``,
    ``UnknownVersion`` or ``CyclicOrder``.
    """

    resolution = _Resolution(index)
    resolved_version = resolution.visit(buildpack_id, version)
    resolved = ResolvedSet(resolution.entries)
    logger.debug("resolved %s@%s to %d buildpacks", buildpack_id, resolved_version, len(resolved))
    return resolved, resolved_version
