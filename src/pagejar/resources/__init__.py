"""Resource stores: where the served bytes come from."""

from .store import (
    DirectoryResourceStore,
    MemoryResourceStore,
    Resource,
    ResourceMetadata,
    ResourceStore,
    ZipResourceStore,
    load_properties,
    open_store,
)

__all__ = [
    "DirectoryResourceStore",
    "MemoryResourceStore",
    "Resource",
    "ResourceMetadata",
    "ResourceStore",
    "ZipResourceStore",
    "load_properties",
    "open_store",
]
