"""Gem index, dependency resolution and extraction."""

from warpack.gems.index import (
    InMemoryPackageIndex,
    PackageIndex,
    SpecificationIndex,
    load_package_index,
)
from warpack.gems.resolver import GemResolver, ResolvedPackageSet, declare_package_tasks
from warpack.gems.unpack import GemCommandUnpacker, PackageUnpacker

__all__ = [
    "GemCommandUnpacker",
    "GemResolver",
    "InMemoryPackageIndex",
    "PackageIndex",
    "PackageUnpacker",
    "ResolvedPackageSet",
    "SpecificationIndex",
    "declare_package_tasks",
    "load_package_index",
]
