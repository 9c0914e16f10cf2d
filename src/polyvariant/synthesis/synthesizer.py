from __future__ import annotations

from typing import Sequence

import libcst as cst

from polyvariant.exceptions import EmptyVariantSet, IndexOutOfRange, MalformedDeclaration
from polyvariant.synthesis.model import FunctionSignature, Variant

_INDENT = "    "


def _skeleton(signature: FunctionSignature) -> str:
    lines = [f"@{decorator}" for decorator in signature.decorators]
    lines.append(signature.header())
    if signature.docstring:
        lines.append(f"{_INDENT}{signature.docstring}")
    lines.append(f"{_INDENT}pass")
    return "\n".join(lines) + "\n"


def _body_statements(variant: Variant, name: str) -> Sequence[cst.BaseStatement]:
    try:
        module = cst.parse_module(variant.body)
    except cst.ParserSyntaxError as exc:
        raise MalformedDeclaration(
            f"{name}: variant {variant.index} body does not parse: {exc.message}",
            line=exc.editor_line,
            column=exc.editor_column,
        ) from exc
    if not module.body:
        raise MalformedDeclaration(f"{name}: variant {variant.index} has an empty body")
    return module.body


def synthesize(
    signature: FunctionSignature,
    variants: Sequence[Variant],
    selected_index: int,
) -> str:
    """Render ``signature`` with exactly the body of ``variants[selected_index]``.

    The body keeps its own formatting, comments and string literals; only its
    indentation is rebuilt. Nothing from the other variants reaches the output.
    """
    if not variants:
        raise EmptyVariantSet(f"{signature.name} has no variants to synthesize")
    if not 0 <= selected_index < len(variants):
        raise IndexOutOfRange(selected_index, len(variants))
    statements = _body_statements(variants[selected_index], signature.name)

    try:
        skeleton = cst.parse_module(_skeleton(signature))
    except cst.ParserSyntaxError as exc:
        raise MalformedDeclaration(
            f"{signature.name}: signature does not parse: {exc.message}"
        ) from exc
    func = cst.ensure_type(skeleton.body[0], cst.FunctionDef)
    block = cst.ensure_type(func.body, cst.IndentedBlock)
    # Drop the ``pass`` placeholder, keep the docstring if there is one.
    prefix = list(block.body[:-1])
    func = func.with_changes(body=block.with_changes(body=[*prefix, *statements]))
    return cst.Module(body=[func]).code
