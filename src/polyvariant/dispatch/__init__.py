"""Run-time selection among live implementations of one capability."""

from polyvariant.dispatch.capability import Capability, FunctionCapability, NamedCapability
from polyvariant.dispatch.catalog import Catalog, CatalogBuilder, dispatch

__all__ = [
    "Capability",
    "Catalog",
    "CatalogBuilder",
    "FunctionCapability",
    "NamedCapability",
    "dispatch",
]
