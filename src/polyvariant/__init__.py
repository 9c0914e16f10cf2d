"""Polyvariant package root."""

from polyvariant.dispatch import Catalog, CatalogBuilder, FunctionCapability, NamedCapability, dispatch
from polyvariant.exceptions import (
    ConfigError,
    DuplicateCapability,
    EmptyCatalog,
    EmptyVariantSet,
    IndexOutOfRange,
    MalformedDeclaration,
    OutputCollision,
    PolyvariantError,
)
from polyvariant.markers import polymorphic, variant

__all__ = [
    "__version__",
    "Catalog",
    "CatalogBuilder",
    "ConfigError",
    "DuplicateCapability",
    "EmptyCatalog",
    "EmptyVariantSet",
    "FunctionCapability",
    "IndexOutOfRange",
    "MalformedDeclaration",
    "NamedCapability",
    "OutputCollision",
    "PolyvariantError",
    "dispatch",
    "polymorphic",
    "variant",
]

__version__ = "0.1.0"
