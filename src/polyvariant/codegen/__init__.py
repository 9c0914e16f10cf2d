"""Build engine: select, synthesize, obfuscate and splice declarations."""

from polyvariant.codegen.engine import BuildEngine
from polyvariant.codegen.model import BuildPlan, BuildSettings, SelectionRecord

__all__ = ["BuildEngine", "BuildPlan", "BuildSettings", "SelectionRecord"]
