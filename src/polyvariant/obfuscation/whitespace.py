from __future__ import annotations

import random
from dataclasses import dataclass
from typing import ClassVar

from polyvariant.obfuscation.base import ObfuscationRule, check_bounds, check_probability
from polyvariant.obfuscation.tokens import SourceScan, scan


def _split_newline(line: str) -> tuple[str, str]:
    stripped = line.rstrip("\r\n")
    return stripped, line[len(stripped):]


@dataclass(frozen=True)
class WhitespaceJitter(ObfuscationRule):
    """Doubles inter-token whitespace and pads line ends with spaces."""

    probability: float = 1.0
    double_spaces: float = 0.5
    trailing_indent: float = 0.3
    indent_width: int = 4
    name: ClassVar[str] = "whitespace"

    def __post_init__(self) -> None:
        super().__post_init__()
        check_probability(self.name, "double_spaces", self.double_spaces)
        check_probability(self.name, "trailing_indent", self.trailing_indent)
        check_bounds(
            self.name, "indent_width", self.indent_width, "indent_width", self.indent_width, floor=1
        )

    def transform(self, text: str, rng: random.Random) -> str:
        source = scan(text)
        if source is None:
            return text
        double = rng.random() < self.double_spaces
        trail = rng.random() < self.trailing_indent
        if not (double or trail):
            return text
        lines: list[str] = []
        for row, line in enumerate(source.lines, start=1):
            body, newline = _split_newline(line)
            if double:
                body = self._double(source, row, body)
            if trail and not source.line_continues(row):
                body = body + " " * self.indent_width
            lines.append(body + newline)
        return "".join(lines)

    @staticmethod
    def _double(source: SourceScan, row: int, body: str) -> str:
        chars: list[str] = []
        for col, char in enumerate(body):
            chars.append(char)
            if char in " \t" and not source.is_covered(row, col):
                chars.append(char)
        return "".join(chars)
