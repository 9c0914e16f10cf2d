"""Semantics-preserving source mutations applied after synthesis."""

from polyvariant.obfuscation.base import ObfuscationRule
from polyvariant.obfuscation.comments import DEFAULT_COMMENT_POOL, CommentInjection
from polyvariant.obfuscation.dead_code import DeadStatementInjection
from polyvariant.obfuscation.pipeline import (
    RULE_NAMES,
    ObfuscationPipeline,
    PipelineResult,
    default_rules,
    pipeline_from_config,
)
from polyvariant.obfuscation.rename import IdentifierRandomization
from polyvariant.obfuscation.whitespace import WhitespaceJitter

__all__ = [
    "CommentInjection",
    "DEFAULT_COMMENT_POOL",
    "DeadStatementInjection",
    "IdentifierRandomization",
    "ObfuscationPipeline",
    "ObfuscationRule",
    "PipelineResult",
    "RULE_NAMES",
    "WhitespaceJitter",
    "default_rules",
    "pipeline_from_config",
]
