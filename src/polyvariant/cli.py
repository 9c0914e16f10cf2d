from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from polyvariant.codegen.engine import BuildEngine
from polyvariant.codegen.model import BuildSettings
from polyvariant.exceptions import PolyvariantError
from polyvariant.runtime.json_io import dump_json_pretty
from polyvariant.selection.counter import BuildCounter
from polyvariant.selection.policy import POLICY_NAMES, DeterministicHash
from polyvariant.synthesis.registry import collect_declarations

app = typer.Typer(add_completion=False)


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(str(exc), err=True)
    return typer.Exit(code=1)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _settings(
    root: Path,
    config: Optional[Path],
    *,
    policy: Optional[str] = None,
    seed: Optional[str] = None,
    obfuscate: Optional[bool] = None,
) -> BuildSettings:
    if policy is not None and policy.strip().lower() not in POLICY_NAMES:
        raise typer.BadParameter(
            f"expected one of {', '.join(POLICY_NAMES)}", param_hint="--policy"
        )
    overrides = {
        "policy": policy,
        "seed": int(seed) if seed is not None and seed.lstrip("-").isdigit() else seed,
        "obfuscate": obfuscate,
    }
    return BuildSettings.from_config(root=root, config_path=config, overrides=overrides)


@app.command()
def build(
    paths: List[Path] = typer.Argument(..., exists=True),
    out_dir: Path = typer.Option(..., "--out-dir", help="Directory for built modules."),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
    policy: Optional[str] = typer.Option(None, "--policy", help="hash or random."),
    seed: Optional[str] = typer.Option(None, "--seed", help="Seed for the random source."),
    obfuscate: Optional[bool] = typer.Option(None, "--obfuscate/--no-obfuscate"),
    manifest: Optional[Path] = typer.Option(
        None, "--manifest", help="Write a JSON record of every selection."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Build declaration modules into OUT_DIR, keeping one variant per function."""
    _configure_logging(verbose)
    try:
        settings = _settings(root, config, policy=policy, seed=seed, obfuscate=obfuscate)
        engine = BuildEngine(settings)
        plans = engine.build_paths(paths, out_dir=out_dir, root=root, manifest=manifest)
    except (PolyvariantError, OSError, UnicodeDecodeError) as exc:
        raise _fail(exc) from exc
    for plan in plans:
        for record in plan.selections:
            label = f" ({record.label})" if record.label else ""
            typer.echo(
                f"{plan.output_path}: {record.function} -> variant "
                f"{record.index}/{record.variant_count}{label}"
            )
        for warning in plan.warnings:
            typer.echo(f"warning: {warning}", err=True)


@app.command()
def inspect(paths: List[Path] = typer.Argument(..., exists=True, dir_okay=False)) -> None:
    """List the declarations in PATHS with their variants."""
    for path in paths:
        try:
            declarations = collect_declarations(path.read_text(encoding="utf-8"), path=str(path))
        except (PolyvariantError, OSError, UnicodeDecodeError) as exc:
            raise _fail(exc) from exc
        for declaration in declarations:
            typer.echo(
                f"{path}:{declaration.line}: {declaration.name} "
                f"[{declaration.signature.visibility}] {len(declaration.variants)} variant(s)"
            )
            for variant in declaration.variants:
                label = variant.label or "-"
                typer.echo(f"  {variant.index}: {label}")


@app.command()
def fingerprint(
    name: str = typer.Argument(..., help="Function name to fingerprint."),
    count: Optional[int] = typer.Option(None, "--count", min=1, help="Variant count to select from."),
    counter: Optional[int] = typer.Option(None, "--counter", min=0, help="Build counter value."),
    out_dir: Optional[Path] = typer.Option(
        None, "--out-dir", help="Read the next build counter from this directory."
    ),
    root: Path = typer.Option(Path("."), "--root"),
    config: Optional[Path] = typer.Option(None, "--config"),
) -> None:
    """Print the fingerprint a build would hash for NAME."""
    try:
        settings = _settings(root, config)
        engine = BuildEngine(settings)
    except PolyvariantError as exc:
        raise _fail(exc) from exc
    if counter is None and out_dir is not None:
        counter = BuildCounter.in_directory(out_dir).read() + 1
    value = engine.collector.collect(name, build_counter=counter)
    payload: dict[str, object] = {"sources": value.as_dict(), "sha256": value.hexdigest()}
    if count is not None:
        payload["index"] = DeterministicHash(fingerprint=value).select(count)
    typer.echo(dump_json_pretty(payload))
