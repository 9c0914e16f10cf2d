from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

VISIBILITY_PUBLIC = "public"
VISIBILITY_PRIVATE = "private"


def visibility_for(name: str) -> str:
    return VISIBILITY_PRIVATE if name.startswith("_") else VISIBILITY_PUBLIC


class ParameterKind(str, Enum):
    POSITIONAL_ONLY = "positional_only"
    POSITIONAL_OR_KEYWORD = "positional_or_keyword"
    VAR_POSITIONAL = "var_positional"
    KEYWORD_ONLY = "keyword_only"
    VAR_KEYWORD = "var_keyword"


@dataclass(frozen=True)
class Parameter:
    name: str
    annotation: str | None = None
    default: str | None = None
    kind: ParameterKind = ParameterKind.POSITIONAL_OR_KEYWORD

    def render(self) -> str:
        prefix = ""
        if self.kind is ParameterKind.VAR_POSITIONAL:
            prefix = "*"
        elif self.kind is ParameterKind.VAR_KEYWORD:
            prefix = "**"
        text = f"{prefix}{self.name}"
        if self.annotation:
            text = f"{text}: {self.annotation}"
        if self.default is not None:
            separator = " = " if self.annotation else "="
            text = f"{text}{separator}{self.default}"
        return text


@dataclass(frozen=True)
class FunctionSignature:
    name: str
    parameters: tuple[Parameter, ...] = ()
    return_type: str | None = None
    visibility: str = VISIBILITY_PUBLIC
    is_async: bool = False
    decorators: tuple[str, ...] = ()
    docstring: str | None = None

    def render_parameters(self) -> str:
        parts: list[str] = []
        pending_slash = False
        star_seen = False
        for param in self.parameters:
            if pending_slash and param.kind is not ParameterKind.POSITIONAL_ONLY:
                parts.append("/")
                pending_slash = False
            if param.kind is ParameterKind.KEYWORD_ONLY and not star_seen:
                parts.append("*")
                star_seen = True
            if param.kind is ParameterKind.VAR_POSITIONAL:
                star_seen = True
            if param.kind is ParameterKind.POSITIONAL_ONLY:
                pending_slash = True
            parts.append(param.render())
        if pending_slash:
            parts.append("/")
        return ", ".join(parts)

    def header(self) -> str:
        prefix = "async def" if self.is_async else "def"
        returns = f" -> {self.return_type}" if self.return_type else ""
        return f"{prefix} {self.name}({self.render_parameters()}){returns}:"


@dataclass(frozen=True)
class Variant:
    index: int
    body: str
    label: str | None = None


@dataclass(frozen=True)
class Declaration:
    signature: FunctionSignature
    variants: tuple[Variant, ...] = field(default_factory=tuple)
    line: int | None = None
    path: str | None = None

    @property
    def name(self) -> str:
        return self.signature.name
