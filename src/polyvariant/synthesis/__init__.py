"""Declaration parsing and single-variant source synthesis."""

from polyvariant.synthesis.model import (
    VISIBILITY_PRIVATE,
    VISIBILITY_PUBLIC,
    Declaration,
    FunctionSignature,
    Parameter,
    ParameterKind,
    Variant,
)
from polyvariant.synthesis.registry import (
    DeclarationSite,
    collect_declarations,
    parse_declaration,
    scan_module,
)
from polyvariant.synthesis.synthesizer import synthesize

__all__ = [
    "Declaration",
    "DeclarationSite",
    "FunctionSignature",
    "Parameter",
    "ParameterKind",
    "VISIBILITY_PRIVATE",
    "VISIBILITY_PUBLIC",
    "Variant",
    "collect_declarations",
    "parse_declaration",
    "scan_module",
    "synthesize",
]
