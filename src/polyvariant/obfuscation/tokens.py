"""Token-level view of a source text, shared by the text-rewriting rules.

Rules only edit positions this scan proves safe: whitespace outside every
token, line ends that are not inside a multi-line token, and logical line
starts whose enclosing scope is known.
"""

from __future__ import annotations

import io
import token
import tokenize
from dataclasses import dataclass, field

INTROSPECTION_NAMES = frozenset({"locals", "vars", "globals", "eval", "exec", "dir"})

_LAYOUT_TYPES = frozenset(
    {
        token.NEWLINE,
        token.NL,
        token.INDENT,
        token.DEDENT,
        token.ENDMARKER,
        token.ENCODING,
    }
)
_STRING_START_NAMES = ("FSTRING_START", "TSTRING_START")
_STRING_END_NAMES = ("FSTRING_END", "TSTRING_END")
_STRING_STARTS = frozenset(
    getattr(token, name) for name in _STRING_START_NAMES if hasattr(token, name)
)
_STRING_ENDS = frozenset(
    getattr(token, name) for name in _STRING_END_NAMES if hasattr(token, name)
)

SCOPE_DEF = "def"
SCOPE_CLASS = "class"
SCOPE_BLOCK = "block"


@dataclass(frozen=True)
class LogicalLine:
    row: int
    col: int
    indent: str
    first: str
    first_type: int
    in_function: bool
    after_decorator: bool

    @property
    def is_string(self) -> bool:
        return self.first_type == token.STRING or self.first_type in _STRING_STARTS


@dataclass
class SourceScan:
    lines: list[str]
    covered: dict[int, list[tuple[int, int]]] = field(default_factory=dict)
    continued_rows: set[int] = field(default_factory=set)
    logical_lines: list[LogicalLine] = field(default_factory=list)
    names: set[str] = field(default_factory=set)

    def is_covered(self, row: int, col: int) -> bool:
        return any(start <= col < end for start, end in self.covered.get(row, ()))

    def line_continues(self, row: int) -> bool:
        """True when the end of ``row`` (1-based) cannot take extra text."""
        if row in self.continued_rows:
            return True
        if not 1 <= row <= len(self.lines):
            return False
        return self.lines[row - 1].rstrip("\r\n").endswith("\\")

    @property
    def uses_introspection(self) -> bool:
        return bool(self.names & INTROSPECTION_NAMES)


def _cover(scan: SourceScan, start: tuple[int, int], end: tuple[int, int]) -> None:
    start_row, start_col = start
    end_row, end_col = end
    for row in range(start_row, end_row + 1):
        begin = start_col if row == start_row else 0
        if row == end_row:
            stop = end_col
        else:
            stop = len(scan.lines[row - 1]) if row <= len(scan.lines) else 0
            scan.continued_rows.add(row)
        scan.covered.setdefault(row, []).append((begin, stop))


def scan(text: str) -> SourceScan | None:
    """Tokenize ``text``; ``None`` when it is not valid Python tokens."""
    result = SourceScan(lines=io.StringIO(text).readlines())
    scopes: list[str] = []
    pending_scope: str | None = None
    string_depth = 0
    string_start: tuple[int, int] | None = None
    at_line_start = True
    header: list[tokenize.TokenInfo] = []
    after_decorator = False
    try:
        for tok in tokenize.generate_tokens(io.StringIO(text).readline):
            if tok.type == token.ERRORTOKEN:
                return None
            if tok.type in _STRING_STARTS:
                if string_depth == 0:
                    string_start = tok.start
                string_depth += 1
            elif tok.type in _STRING_ENDS:
                string_depth -= 1
                if string_depth == 0 and string_start is not None:
                    _cover(result, string_start, tok.end)
                    string_start = None
            elif string_depth == 0 and tok.type not in _LAYOUT_TYPES:
                _cover(result, tok.start, tok.end)
            if tok.type == token.NAME:
                result.names.add(tok.string)

            if tok.type == token.INDENT:
                scopes.append(pending_scope or SCOPE_BLOCK)
                pending_scope = None
                continue
            if tok.type == token.DEDENT:
                if scopes:
                    scopes.pop()
                continue
            if tok.type in (token.COMMENT, token.NL, token.ENCODING, token.ENDMARKER):
                continue
            if tok.type == token.NEWLINE:
                pending_scope = _header_scope(header)
                after_decorator = bool(header) and header[0].string == "@"
                header = []
                at_line_start = True
                continue
            if string_depth > 0 and tok.type not in _STRING_STARTS:
                header.append(tok)
                continue
            if at_line_start:
                at_line_start = False
                row, col = tok.start
                line_text = result.lines[row - 1] if row <= len(result.lines) else ""
                result.logical_lines.append(
                    LogicalLine(
                        row=row,
                        col=col,
                        indent=line_text[:col],
                        first=tok.string,
                        first_type=tok.type,
                        in_function=_innermost_definition(scopes) == SCOPE_DEF,
                        after_decorator=after_decorator,
                    )
                )
            header.append(tok)
    except (tokenize.TokenError, SyntaxError):
        return None
    return result


def _header_scope(header: list[tokenize.TokenInfo]) -> str | None:
    if not header or header[-1].string != ":":
        return None
    first = header[0].string
    if first == "async" and len(header) > 1:
        first = header[1].string
    if first == "def":
        return SCOPE_DEF
    if first == "class":
        return SCOPE_CLASS
    return SCOPE_BLOCK


def _innermost_definition(scopes: list[str]) -> str | None:
    for scope in reversed(scopes):
        if scope != SCOPE_BLOCK:
            return scope
    return None
