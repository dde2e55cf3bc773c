"""Extraction of standalone buildpackage images from builder images."""

from .builder import PackageBuilder
from .layout import OCILayoutStore
from .metadata import MetadataIndex
from .resolver import ResolvedSet, resolve
from .stacks import merge_stacks

__all__ = ["PackageBuilder", "OCILayoutStore", "MetadataIndex", "ResolvedSet", "resolve", "merge_stacks"]
