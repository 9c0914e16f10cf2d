from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Sequence

from polyvariant.config import TomlTable, config_bool, config_str_list, rule_section
from polyvariant.obfuscation.base import ObfuscationRule
from polyvariant.obfuscation.comments import CommentInjection
from polyvariant.obfuscation.dead_code import DeadStatementInjection
from polyvariant.obfuscation.rename import IdentifierRandomization
from polyvariant.obfuscation.whitespace import WhitespaceJitter

logger = logging.getLogger(__name__)

RULE_TYPES: tuple[type[ObfuscationRule], ...] = (
    WhitespaceJitter,
    CommentInjection,
    DeadStatementInjection,
    IdentifierRandomization,
)
RULE_NAMES: tuple[str, ...] = tuple(rule.name for rule in RULE_TYPES)

# Keys each rule reads from its ``[obfuscation.<name>]`` table.
_RULE_KEYS: dict[str, tuple[str, ...]] = {
    WhitespaceJitter.name: ("probability", "double_spaces", "trailing_indent", "indent_width"),
    CommentInjection.name: ("probability", "min_count", "max_count"),
    DeadStatementInjection.name: ("probability", "min_count", "max_count"),
    IdentifierRandomization.name: ("probability", "min_length", "max_length"),
}


def default_rules() -> tuple[ObfuscationRule, ...]:
    return tuple(rule_type() for rule_type in RULE_TYPES)


@dataclass(frozen=True)
class PipelineResult:
    text: str
    rules: tuple[str, ...] = ()


@dataclass
class ObfuscationPipeline:
    """Runs its rules in order; each one draws its own trigger from ``rng``."""

    rules: Sequence[ObfuscationRule] = field(default_factory=default_rules)
    rng: random.Random = field(default_factory=random.Random)

    def apply(self, text: str) -> PipelineResult:
        fired: list[str] = []
        for rule in self.rules:
            if not rule.triggered(self.rng):
                continue
            text = rule.transform(text, self.rng)
            fired.append(rule.name)
            logger.debug("obfuscation rule %s fired", rule.name)
        return PipelineResult(text=text, rules=tuple(fired))


def rule_from_config(rule_type: type[ObfuscationRule], section: TomlTable | None) -> ObfuscationRule:
    table = rule_section(section, rule_type.name)
    kwargs = {
        key: table[key]
        for key in _RULE_KEYS.get(rule_type.name, ())
        if table.get(key) is not None
    }
    if rule_type is CommentInjection:
        pool = config_str_list(table, "pool")
        if pool is not None:
            kwargs["pool"] = pool
    return rule_type(**kwargs)


def pipeline_from_config(
    section: TomlTable | None,
    *,
    rng: random.Random | None = None,
) -> ObfuscationPipeline:
    """Build a pipeline from an ``[obfuscation]`` table.

    A rule whose table sets ``enabled = false`` is left out; values are
    validated by the rule constructors and raise ``ConfigError``.
    """
    rules: list[ObfuscationRule] = []
    for rule_type in RULE_TYPES:
        table = rule_section(section, rule_type.name)
        if not config_bool(table, "enabled", True):
            continue
        rules.append(rule_from_config(rule_type, section))
    return ObfuscationPipeline(rules=tuple(rules), rng=rng if rng is not None else random.Random())
