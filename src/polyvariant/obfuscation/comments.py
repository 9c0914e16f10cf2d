from __future__ import annotations

import random
from dataclasses import dataclass
from typing import ClassVar

from polyvariant.exceptions import ConfigError
from polyvariant.obfuscation.base import ObfuscationRule, check_bounds
from polyvariant.obfuscation.tokens import scan

DEFAULT_COMMENT_POOL: tuple[str, ...] = (
    "# Processing data",
    "# Optimized path",
    "# Handle edge case",
    "# Core algorithm implementation",
    "# Compute result",
)


def _indent_of(line: str) -> str:
    return line[: len(line) - len(line.lstrip(" \t"))]


@dataclass(frozen=True)
class CommentInjection(ObfuscationRule):
    probability: float = 0.7
    min_count: int = 1
    max_count: int = 4
    pool: tuple[str, ...] = DEFAULT_COMMENT_POOL
    name: ClassVar[str] = "comments"

    def __post_init__(self) -> None:
        super().__post_init__()
        check_bounds(self.name, "min_count", self.min_count, "max_count", self.max_count, floor=0)
        if not self.pool:
            raise ConfigError(f"{self.name}.pool must not be empty")
        for entry in self.pool:
            if not isinstance(entry, str) or not entry.startswith("#") or "\n" in entry or "\r" in entry:
                raise ConfigError(
                    f"{self.name}.pool entries must be single-line '#' comments, got {entry!r}"
                )

    def transform(self, text: str, rng: random.Random) -> str:
        source = scan(text)
        if source is None or not source.lines:
            return text
        # Position i inserts before line i (0-based); the previous line must
        # end outside any token and without a backslash.
        positions = [
            index
            for index in range(len(source.lines))
            if index == 0 or not source.line_continues(index)
        ]
        if not positions:
            return text
        count = rng.randint(self.min_count, self.max_count)
        picks = sorted((rng.choice(positions) for _ in range(count)), reverse=True)
        lines = list(source.lines)
        newline = "\r\n" if lines[0].endswith("\r\n") else "\n"
        for index in picks:
            indent = _indent_of(lines[index])
            lines.insert(index, f"{indent}{rng.choice(self.pool)}{newline}")
        return "".join(lines)
