"""Declaration parsing: ``@polymorphic`` functions made of ``with variant():`` blocks.

A declaration looks like::

    @polymorphic
    def compute(x: int) -> int:
        \"\"\"Shared docstring.\"\"\"
        with variant("increment"):
            return x + 1
        with variant():
            return x * 2

Each block is one candidate body. The registry only checks the shape; it never
compares what the bodies do.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import libcst as cst
from libcst.metadata import MetadataWrapper, PositionProvider

from polyvariant.exceptions import EmptyVariantSet, MalformedDeclaration
from polyvariant.synthesis.model import (
    Declaration,
    FunctionSignature,
    Parameter,
    ParameterKind,
    Variant,
    visibility_for,
)

MARKER_NAME = "polymorphic"
VARIANT_NAME = "variant"


@dataclass(frozen=True)
class DeclarationSite:
    """A declaration together with the node it was parsed from."""

    node: cst.FunctionDef
    declaration: Declaration


def _callee(expr: cst.BaseExpression) -> cst.BaseExpression:
    return expr.func if isinstance(expr, cst.Call) else expr


def _names(expr: cst.BaseExpression, name: str) -> bool:
    if isinstance(expr, cst.Name):
        return expr.value == name
    if isinstance(expr, cst.Attribute):
        return expr.attr.value == name
    return False


def is_marker_decorator(decorator: cst.Decorator) -> bool:
    return _names(_callee(decorator.decorator), MARKER_NAME)


def is_declaration(node: cst.FunctionDef) -> bool:
    return any(is_marker_decorator(decorator) for decorator in node.decorators)


def parse_source(text: str, *, path: str | None = None) -> cst.Module:
    try:
        return cst.parse_module(text)
    except cst.ParserSyntaxError as exc:
        raise MalformedDeclaration(
            f"source does not parse: {exc.message}",
            path=path,
            line=exc.editor_line,
            column=exc.editor_column,
        ) from exc


def _is_placeholder(stmt: cst.CSTNode) -> bool:
    if not isinstance(stmt, cst.SimpleStatementLine):
        return False
    return all(
        isinstance(item, cst.Pass)
        or (isinstance(item, cst.Expr) and isinstance(item.value, cst.Ellipsis))
        for item in stmt.body
    )


def _docstring_literal(stmt: cst.CSTNode) -> cst.BaseExpression | None:
    if not isinstance(stmt, cst.SimpleStatementLine) or len(stmt.body) != 1:
        return None
    expr = stmt.body[0]
    if isinstance(expr, cst.Expr) and isinstance(
        expr.value, (cst.SimpleString, cst.ConcatenatedString)
    ):
        return expr.value
    return None


class _DeclarationCollector(cst.CSTVisitor):
    METADATA_DEPENDENCIES = (PositionProvider,)

    def __init__(self, module: cst.Module, path: str | None) -> None:
        super().__init__()
        self.module = module
        self.path = path
        self.sites: list[DeclarationSite] = []
        self._depth = 0

    def _line(self, node: cst.CSTNode) -> int:
        return self.get_metadata(PositionProvider, node).start.line

    def _malformed(self, message: str, node: cst.CSTNode) -> MalformedDeclaration:
        position = self.get_metadata(PositionProvider, node).start
        return MalformedDeclaration(
            message, path=self.path, line=position.line, column=position.column + 1
        )

    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
        if is_declaration(node):
            if self._depth > 0:
                raise self._malformed(
                    f"polymorphic declaration {node.name.value!r} must be defined at module level",
                    node,
                )
            self.sites.append(DeclarationSite(node=node, declaration=self._declaration(node)))
        self._depth += 1
        return True

    def leave_FunctionDef(self, original_node: cst.FunctionDef) -> None:
        self._depth -= 1

    def visit_ClassDef(self, node: cst.ClassDef) -> bool:
        self._depth += 1
        return True

    def leave_ClassDef(self, original_node: cst.ClassDef) -> None:
        self._depth -= 1

    def _code(self, node: cst.CSTNode) -> str:
        return self.module.code_for_node(node).strip()

    def _parameter(self, param: cst.Param, kind: ParameterKind) -> Parameter:
        annotation = self._code(param.annotation.annotation) if param.annotation else None
        default = self._code(param.default) if param.default is not None else None
        return Parameter(name=param.name.value, annotation=annotation, default=default, kind=kind)

    def _parameters(self, params: cst.Parameters) -> tuple[Parameter, ...]:
        result: list[Parameter] = []
        result.extend(
            self._parameter(p, ParameterKind.POSITIONAL_ONLY) for p in params.posonly_params
        )
        result.extend(
            self._parameter(p, ParameterKind.POSITIONAL_OR_KEYWORD) for p in params.params
        )
        if isinstance(params.star_arg, cst.Param):
            result.append(self._parameter(params.star_arg, ParameterKind.VAR_POSITIONAL))
        result.extend(
            self._parameter(p, ParameterKind.KEYWORD_ONLY) for p in params.kwonly_params
        )
        if params.star_kwarg is not None:
            result.append(self._parameter(params.star_kwarg, ParameterKind.VAR_KEYWORD))
        return tuple(result)

    def _statements(self, node: cst.FunctionDef) -> Sequence[cst.BaseStatement]:
        body = node.body
        if isinstance(body, cst.IndentedBlock):
            return body.body
        return [cst.SimpleStatementLine(body=body.body)]

    def _declaration(self, node: cst.FunctionDef) -> Declaration:
        statements = list(self._statements(node))
        docstring: str | None = None
        if statements:
            literal = _docstring_literal(statements[0])
            if literal is not None:
                docstring = self._code(literal)
                statements = statements[1:]

        signature = FunctionSignature(
            name=node.name.value,
            parameters=self._parameters(node.params),
            return_type=self._code(node.returns.annotation) if node.returns else None,
            visibility=visibility_for(node.name.value),
            is_async=node.asynchronous is not None,
            decorators=tuple(
                self._code(decorator.decorator)
                for decorator in node.decorators
                if not is_marker_decorator(decorator)
            ),
            docstring=docstring,
        )

        variants: list[Variant] = []
        for stmt in statements:
            if isinstance(stmt, cst.With):
                label = self._variant_label(stmt)
                variants.append(
                    Variant(index=len(variants), body=self._block_text(stmt.body), label=label)
                )
            elif _is_placeholder(stmt):
                continue
            else:
                raise self._malformed(
                    f"{signature.name}: expected only `with {VARIANT_NAME}(...):` blocks",
                    stmt,
                )
        line = self._line(node)
        if not variants:
            location = f"{self.path or '<declaration>'}:{line}"
            raise EmptyVariantSet(f"{location}: {signature.name} declares no variants")
        return Declaration(
            signature=signature, variants=tuple(variants), line=line, path=self.path
        )

    def _variant_label(self, stmt: cst.With) -> str | None:
        if stmt.asynchronous is not None or len(stmt.items) != 1:
            raise self._malformed(f"a variant block takes exactly one `{VARIANT_NAME}()` item", stmt)
        item = stmt.items[0]
        if item.asname is not None:
            raise self._malformed("a variant block cannot bind a name with `as`", stmt)
        header = item.item
        if not _names(_callee(header), VARIANT_NAME):
            raise self._malformed(f"expected `{VARIANT_NAME}(...)` as the block header", stmt)
        if not isinstance(header, cst.Call) or not header.args:
            return None
        if len(header.args) != 1 or header.args[0].keyword is not None or header.args[0].star:
            raise self._malformed(f"`{VARIANT_NAME}()` takes at most one label", stmt)
        value = header.args[0].value
        if not isinstance(value, cst.SimpleString):
            raise self._malformed("a variant label must be a plain string literal", stmt)
        evaluated = value.evaluated_value
        return evaluated if isinstance(evaluated, str) else evaluated.decode("utf-8")

    def _block_text(self, block: cst.BaseSuite) -> str:
        if isinstance(block, cst.IndentedBlock):
            statements = list(block.body)
        else:
            statements = [cst.SimpleStatementLine(body=block.body)]
        first = statements[0]
        # Blank lines above the first statement are layout, not body.
        statements[0] = first.with_changes(
            leading_lines=[line for line in first.leading_lines if line.comment is not None]
        )
        return self.module.with_changes(body=statements, header=[], footer=[]).code


def scan_module(module: cst.Module, *, path: str | None = None) -> list[DeclarationSite]:
    collector = _DeclarationCollector(module, path)
    MetadataWrapper(module, unsafe_skip_copy=True).visit(collector)
    return collector.sites


def collect_declarations(module_text: str, *, path: str | None = None) -> list[Declaration]:
    module = parse_source(module_text, path=path)
    return [site.declaration for site in scan_module(module, path=path)]


def parse_declaration(text: str, *, path: str | None = None) -> Declaration:
    declarations = collect_declarations(text, path=path)
    if len(declarations) != 1:
        raise MalformedDeclaration(
            f"expected exactly one @{MARKER_NAME} declaration, found {len(declarations)}",
            path=path,
            line=declarations[1].line if len(declarations) > 1 else None,
        )
    return declarations[0]
