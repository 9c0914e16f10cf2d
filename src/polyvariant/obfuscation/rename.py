from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import ClassVar

import libcst as cst

from polyvariant.obfuscation.base import ObfuscationRule, check_bounds
from polyvariant.obfuscation.tokens import INTROSPECTION_NAMES
from polyvariant.synthesis.naming import unique_random_name

_ROOT = "root"
_FUNCTION = "function"
_CLASS = "class"


def _target_names(target: cst.BaseExpression) -> list[str]:
    if isinstance(target, cst.Name):
        return [target.value]
    if isinstance(target, (cst.Tuple, cst.List)):
        names: list[str] = []
        for element in target.elements:
            names.extend(_target_names(element.value))
        return names
    if isinstance(target, cst.StarredElement):
        return _target_names(target.value)
    return []


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


@dataclass
class _Bindings:
    outer_bound: set[str] = field(default_factory=set)
    params: set[str] = field(default_factory=set)
    declared: set[str] = field(default_factory=set)
    imported: set[str] = field(default_factory=set)
    class_bound: set[str] = field(default_factory=set)
    # Names printed by ``f"{name=}"`` keep their spelling.
    echoed: set[str] = field(default_factory=set)
    introspective: bool = False


class _ScopeBindings(cst.CSTVisitor):
    """Names bound directly in one function's scope, plus names it must keep.

    Only the body is walked. Decorators, defaults and annotations of the
    top-level function are evaluated in the module scope.
    """

    def __init__(self) -> None:
        super().__init__()
        self.bindings = _Bindings()
        self._scopes: list[str] = []

    def collect(self, func: cst.FunctionDef) -> _Bindings:
        self._collect_params(func.params)
        self._scopes.append(_ROOT)
        func.body.visit(self)
        self._scopes.pop()
        return self.bindings

    def _bind(self, names: list[str]) -> None:
        if self._scopes[-1] == _ROOT:
            self.bindings.outer_bound.update(names)
        elif self._scopes[-1] == _CLASS:
            self.bindings.class_bound.update(names)

    def _collect_params(self, params: cst.Parameters) -> None:
        for param in (*params.posonly_params, *params.params, *params.kwonly_params):
            self.bindings.params.add(param.name.value)
        if isinstance(params.star_arg, cst.Param):
            self.bindings.params.add(params.star_arg.name.value)
        if params.star_kwarg is not None:
            self.bindings.params.add(params.star_kwarg.name.value)

    def visit_FunctionDef(self, node: cst.FunctionDef) -> bool:
        self._bind([node.name.value])
        self._collect_params(node.params)
        self._scopes.append(_FUNCTION)
        return True

    def leave_FunctionDef(self, original_node: cst.FunctionDef) -> None:
        self._scopes.pop()

    def visit_Lambda(self, node: cst.Lambda) -> bool:
        self._collect_params(node.params)
        self._scopes.append(_FUNCTION)
        return True

    def leave_Lambda(self, original_node: cst.Lambda) -> None:
        self._scopes.pop()

    def visit_ClassDef(self, node: cst.ClassDef) -> bool:
        self._bind([node.name.value])
        self._scopes.append(_CLASS)
        return True

    def leave_ClassDef(self, original_node: cst.ClassDef) -> None:
        self._scopes.pop()

    def visit_AssignTarget(self, node: cst.AssignTarget) -> None:
        self._bind(_target_names(node.target))

    def visit_AnnAssign(self, node: cst.AnnAssign) -> None:
        self._bind(_target_names(node.target))

    def visit_AugAssign(self, node: cst.AugAssign) -> None:
        self._bind(_target_names(node.target))

    def visit_For(self, node: cst.For) -> None:
        self._bind(_target_names(node.target))

    def visit_WithItem(self, node: cst.WithItem) -> None:
        if node.asname is not None:
            self._bind(_target_names(node.asname.name))

    def visit_ExceptHandler(self, node: cst.ExceptHandler) -> None:
        if node.name is not None:
            self._bind(_target_names(node.name.name))

    def visit_NamedExpr(self, node: cst.NamedExpr) -> None:
        self._bind(_target_names(node.target))

    def visit_Global(self, node: cst.Global) -> None:
        self.bindings.declared.update(item.name.value for item in node.names)

    def visit_Nonlocal(self, node: cst.Nonlocal) -> None:
        self.bindings.declared.update(item.name.value for item in node.names)

    def visit_Import(self, node: cst.Import) -> None:
        for alias in node.names:
            self.bindings.imported.add(alias.evaluated_alias or alias.evaluated_name.split(".")[0])

    def visit_ImportFrom(self, node: cst.ImportFrom) -> None:
        if isinstance(node.names, cst.ImportStar):
            self.bindings.introspective = True
            return
        for alias in node.names:
            self.bindings.imported.add(alias.evaluated_alias or alias.evaluated_name)

    def visit_Name(self, node: cst.Name) -> None:
        if node.value in INTROSPECTION_NAMES:
            self.bindings.introspective = True

    def visit_FormattedStringExpression(self, node: cst.FormattedStringExpression) -> None:
        if node.equal is not None:
            collector = _NameCollector()
            node.expression.visit(collector)
            self.bindings.echoed.update(collector.names)


class _NameCollector(cst.CSTVisitor):
    def __init__(self) -> None:
        super().__init__()
        self.names: set[str] = set()

    def visit_Name(self, node: cst.Name) -> None:
        self.names.add(node.value)


class _NameRewriter(cst.CSTTransformer):
    def __init__(self, mapping: dict[str, str]) -> None:
        super().__init__()
        self.mapping = mapping

    def leave_Name(self, original_node: cst.Name, updated_node: cst.Name) -> cst.Name:
        renamed = self.mapping.get(original_node.value)
        return updated_node.with_changes(value=renamed) if renamed else updated_node

    # Names that are not variable references keep their spelling.
    def leave_Attribute(
        self, original_node: cst.Attribute, updated_node: cst.Attribute
    ) -> cst.Attribute:
        return updated_node.with_changes(attr=original_node.attr)

    def leave_Arg(self, original_node: cst.Arg, updated_node: cst.Arg) -> cst.Arg:
        if original_node.keyword is None:
            return updated_node
        return updated_node.with_changes(keyword=original_node.keyword)

    def leave_ImportAlias(
        self, original_node: cst.ImportAlias, updated_node: cst.ImportAlias
    ) -> cst.ImportAlias:
        return updated_node.with_changes(name=original_node.name)

    def leave_ImportFrom(
        self, original_node: cst.ImportFrom, updated_node: cst.ImportFrom
    ) -> cst.ImportFrom:
        return updated_node.with_changes(module=original_node.module)

    def leave_MatchKeywordElement(
        self, original_node: cst.MatchKeywordElement, updated_node: cst.MatchKeywordElement
    ) -> cst.MatchKeywordElement:
        return updated_node.with_changes(key=original_node.key)


@dataclass(frozen=True)
class IdentifierRandomization(ObfuscationRule):
    """Renames function-local bindings to random lowercase names."""

    probability: float = 0.5
    min_length: int = 2
    max_length: int = 9
    name: ClassVar[str] = "rename"

    def __post_init__(self) -> None:
        super().__post_init__()
        check_bounds(
            self.name, "min_length", self.min_length, "max_length", self.max_length, floor=1
        )

    def transform(self, text: str, rng: random.Random) -> str:
        try:
            module = cst.parse_module(text)
        except cst.ParserSyntaxError:
            return text
        collector = _NameCollector()
        module.visit(collector)
        taken = set(collector.names)
        body = list(module.body)
        changed = False
        for position, stmt in enumerate(body):
            if not isinstance(stmt, cst.FunctionDef):
                continue
            mapping = self._mapping(stmt, rng, taken)
            if mapping:
                body[position] = stmt.with_changes(body=stmt.body.visit(_NameRewriter(mapping)))
                changed = True
        if not changed:
            return text
        return module.with_changes(body=body).code

    def _mapping(self, func: cst.FunctionDef, rng: random.Random, taken: set[str]) -> dict[str, str]:
        bindings = _ScopeBindings().collect(func)
        if bindings.introspective:
            return {}
        candidates = sorted(
            name
            for name in bindings.outer_bound
            - bindings.params
            - bindings.declared
            - bindings.class_bound
            - bindings.imported
            - bindings.echoed
            if not _is_dunder(name) and name != func.name.value
        )
        mapping: dict[str, str] = {}
        for original in candidates:
            replacement = unique_random_name(
                rng, taken, min_length=self.min_length, max_length=self.max_length
            )
            if replacement is None:
                continue
            taken.add(replacement)
            mapping[original] = replacement
        return mapping
