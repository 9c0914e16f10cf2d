from __future__ import annotations

import random
from dataclasses import dataclass
from typing import ClassVar

from polyvariant.obfuscation.base import ObfuscationRule, check_bounds
from polyvariant.obfuscation.tokens import LogicalLine, SourceScan, scan
from polyvariant.synthesis.naming import unique_suffixed_name

# Lines starting with these continue the previous compound statement.
_CONTINUATION_KEYWORDS = frozenset({"elif", "else", "except", "finally", "case"})

# (prefix, template); ``{value}`` is filled only where present.
_TEMPLATES: tuple[tuple[str, str], ...] = (
    ("_v", "{name} = 0"),
    ("_unused", "{name} = {value}"),
    ("_tmp", "{name} = 1 if True else 0"),
)


def _insertable(line: LogicalLine) -> bool:
    return (
        line.in_function
        and line.row > 1
        and line.first not in _CONTINUATION_KEYWORDS
        and not line.is_string
        and not line.after_decorator
    )


@dataclass(frozen=True)
class DeadStatementInjection(ObfuscationRule):
    """Inserts unused assignments before statements inside function bodies."""

    probability: float = 0.6
    min_count: int = 1
    max_count: int = 3
    name: ClassVar[str] = "dead_code"

    def __post_init__(self) -> None:
        super().__post_init__()
        check_bounds(self.name, "min_count", self.min_count, "max_count", self.max_count, floor=0)

    def transform(self, text: str, rng: random.Random) -> str:
        source = scan(text)
        if source is None or source.uses_introspection:
            return text
        candidates = [line for line in source.logical_lines if _insertable(line)]
        if not candidates:
            return text
        count = rng.randint(self.min_count, self.max_count)
        picks = [rng.choice(candidates) for _ in range(count)]
        return self._insert(source, picks, rng)

    @staticmethod
    def _insert(source: SourceScan, picks: list[LogicalLine], rng: random.Random) -> str:
        taken = set(source.names)
        inserts: list[tuple[int, str]] = []
        for line in picks:
            prefix, template = rng.choice(_TEMPLATES)
            name = unique_suffixed_name(rng, prefix, taken)
            taken.add(name)
            statement = template.format(name=name, value=rng.randint(1, 999))
            inserts.append((line.row - 1, f"{line.indent}{statement}"))
        lines = list(source.lines)
        newline = "\r\n" if lines[0].endswith("\r\n") else "\n"
        for index, statement in sorted(inserts, key=lambda item: item[0], reverse=True):
            lines.insert(index, statement + newline)
        return "".join(lines)
