from __future__ import annotations

import logging
import os
import random
from pathlib import Path
from typing import Iterable, Mapping, Sequence

import libcst as cst

from polyvariant.codegen.model import BuildPlan, BuildSettings, SelectionRecord
from polyvariant.exceptions import OutputCollision
from polyvariant.obfuscation.pipeline import ObfuscationPipeline, pipeline_from_config
from polyvariant.runtime.env_policy import OBFUSCATE_ENV, env_enabled_default_true
from polyvariant.runtime.json_io import write_json_pretty
from polyvariant.selection.counter import BuildCounter
from polyvariant.selection.fingerprint import FingerprintCollector
from polyvariant.selection.policy import policy_for
from polyvariant.synthesis.registry import DeclarationSite, parse_source, scan_module
from polyvariant.synthesis.synthesizer import synthesize

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".py"


class _DeclarationSplicer(cst.CSTTransformer):
    def __init__(self, replacements: Mapping[int, Sequence[cst.BaseStatement]]) -> None:
        super().__init__()
        self.replacements = replacements

    def leave_FunctionDef(
        self, original_node: cst.FunctionDef, updated_node: cst.FunctionDef
    ) -> cst.BaseStatement | cst.FlattenSentinel[cst.BaseStatement]:
        statements = self.replacements.get(id(original_node))
        if statements is None:
            return updated_node
        return cst.FlattenSentinel(statements)


class _IndentPinner(cst.CSTTransformer):
    """Spells out a block indent that would otherwise follow the host module."""

    def __init__(self, indent: str) -> None:
        super().__init__()
        self.indent = indent

    def leave_IndentedBlock(
        self, original_node: cst.IndentedBlock, updated_node: cst.IndentedBlock
    ) -> cst.IndentedBlock:
        if updated_node.indent is not None:
            return updated_node
        return updated_node.with_changes(indent=self.indent)


def _replacement_statements(
    site: DeclarationSite, text: str, *, path: str | None, host_indent: str
) -> list[cst.BaseStatement]:
    module = parse_source(text, path=f"{path or '<module>'}:{site.declaration.name}")
    statements = list(module.body)
    if module.default_indent != host_indent:
        pinner = _IndentPinner(module.default_indent)
        statements = [statement.visit(pinner) for statement in statements]
    first = statements[0]
    # Keep the declaration's own leading blank lines and comments in place.
    statements[0] = first.with_changes(
        leading_lines=[*site.node.leading_lines, *module.header, *first.leading_lines]
    )
    return statements


class BuildEngine:
    """Turns modules with ``@polymorphic`` declarations into single-body modules."""

    def __init__(
        self,
        settings: BuildSettings | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or BuildSettings()
        if rng is None:
            rng = random.Random(self.settings.seed) if self.settings.seed is not None else random.Random()
        self.rng = rng
        self.collector = FingerprintCollector(
            environ=environ,
            defaults=self.settings.fingerprint,
            include_timestamp=self.settings.include_timestamp,
        )
        self.pipeline: ObfuscationPipeline | None = None
        if self.settings.obfuscate and env_enabled_default_true(OBFUSCATE_ENV, environ=environ):
            self.pipeline = pipeline_from_config(self.settings.obfuscation, rng=self.rng)

    def build_source(
        self,
        source: str,
        *,
        path: str | None = None,
        build_counter: int | None = None,
    ) -> BuildPlan:
        module = parse_source(source, path=path)
        sites = scan_module(module, path=path)
        if not sites:
            return BuildPlan(
                text=source,
                warnings=[f"{path or '<module>'}: no @polymorphic declarations"],
                build_counter=build_counter,
            )
        replacements: dict[int, list[cst.BaseStatement]] = {}
        records: list[SelectionRecord] = []
        for site in sites:
            declaration = site.declaration
            fingerprint = self.collector.collect(declaration.name, build_counter=build_counter)
            policy = policy_for(self.settings.policy, fingerprint=fingerprint, rng=self.rng)
            index = policy.select(len(declaration.variants))
            text = synthesize(declaration.signature, declaration.variants, index)
            rules: tuple[str, ...] = ()
            if self.pipeline is not None:
                result = self.pipeline.apply(text)
                text, rules = result.text, result.rules
            replacements[id(site.node)] = _replacement_statements(
                site, text, path=path, host_indent=module.default_indent
            )
            record = SelectionRecord(
                function=declaration.name,
                variant_count=len(declaration.variants),
                index=index,
                policy=self.settings.policy,
                label=declaration.variants[index].label,
                rules=rules,
            )
            records.append(record)
            logger.debug(
                "%s: kept variant %d of %d (%s)",
                declaration.name,
                index,
                record.variant_count,
                self.settings.policy,
            )
        output = module.visit(_DeclarationSplicer(replacements))
        return BuildPlan(text=output.code, selections=records, build_counter=build_counter)

    def build_paths(
        self,
        paths: Iterable[Path],
        *,
        out_dir: Path,
        root: Path | None = None,
        manifest: Path | None = None,
    ) -> list[BuildPlan]:
        """Build every file, then write them all; nothing is written on error.

        Directories are searched for ``.py`` files. Outputs keep their path
        relative to ``root`` (or to the directory argument they came from).
        Two inputs that would land on the same output raise
        ``OutputCollision`` before anything is written. The build counter is
        stored only once every output is in place.
        """
        counter = BuildCounter.in_directory(out_dir)
        build_counter = counter.read() + 1
        plans: list[BuildPlan] = []
        claimed: dict[Path, Path] = {}
        for source_path, relative in _expand_sources(paths, root=root):
            output_path = Path(out_dir) / relative
            earlier = claimed.get(output_path)
            if earlier is not None:
                raise OutputCollision(
                    f"{earlier} and {source_path} would both be written to {output_path}"
                )
            claimed[output_path] = source_path
            source = source_path.read_text(encoding="utf-8")
            plan = self.build_source(source, path=str(source_path), build_counter=build_counter)
            plan.source_path = source_path
            plan.output_path = output_path
            for warning in plan.warnings:
                logger.warning("%s", warning)
            plans.append(plan)

        _write_all([(plan.output_path, plan.text) for plan in plans])
        counter.store(build_counter)
        if manifest is not None:
            write_json_pretty(
                manifest,
                {"build_counter": build_counter, "files": [plan.as_dict() for plan in plans]},
            )
        return plans


def _staging_path(output_path: Path) -> Path:
    return output_path.with_name(f".{output_path.name}.tmp")


def _write_all(outputs: Sequence[tuple[Path, str]]) -> None:
    """Stage every output beside its target, then move them all into place."""
    staged: list[tuple[Path, Path]] = []
    try:
        for output_path, text in outputs:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = _staging_path(output_path)
            staged.append((temp_path, output_path))
            temp_path.write_text(text, encoding="utf-8")
    except OSError:
        for temp_path, _ in staged:
            temp_path.unlink(missing_ok=True)
        raise
    for temp_path, output_path in staged:
        os.replace(temp_path, output_path)
        logger.info("wrote %s", output_path)


def _expand_sources(
    paths: Iterable[Path], *, root: Path | None
) -> list[tuple[Path, Path]]:
    sources: list[tuple[Path, Path]] = []
    for path in paths:
        path = Path(path)
        if path.is_dir():
            base = root or path
            for child in sorted(path.rglob(f"*{SOURCE_SUFFIX}")):
                sources.append((child, _relative(child, base)))
        else:
            sources.append((path, _relative(path, root) if root else Path(path.name)))
    return sources


def _relative(path: Path, base: Path) -> Path:
    try:
        return path.resolve().relative_to(Path(base).resolve())
    except ValueError:
        return Path(path.name)
