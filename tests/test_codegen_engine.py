from __future__ import annotations

import json
import random
import textwrap
from pathlib import Path

import pytest

from polyvariant.codegen.engine import BuildEngine
from polyvariant.codegen.model import BuildSettings
from polyvariant.exceptions import MalformedDeclaration, OutputCollision
from polyvariant.obfuscation.pipeline import ObfuscationPipeline
from polyvariant.obfuscation.whitespace import WhitespaceJitter
from polyvariant.selection.counter import BUILD_COUNTER_NAME
from tests.env_helpers import env_scope

FIXED_ENV = {
    "POLYVARIANT_TARGET": "x86_64-unknown-linux-gnu",
    "POLYVARIANT_PROFILE": "release",
    "POLYVARIANT_PACKAGE_NAME": "demo",
    "POLYVARIANT_PACKAGE_VERSION": "1.0.0",
}

FACTORIAL = textwrap.dedent(
    """
    from polyvariant import polymorphic, variant

    @polymorphic
    def factorial(n: int) -> int:
        with variant("iterative"):
            result = 1
            for i in range(2, n + 1):
                result *= i
            return result
        with variant("recursive"):
            return 1 if n <= 1 else n * factorial(n - 1)
        with variant("reduce"):
            import functools
            import operator
            return functools.reduce(operator.mul, range(1, n + 1), 1)
    """
).lstrip("\n")

COMPUTE = textwrap.dedent(
    """
    from polyvariant import polymorphic, variant

    # doubles or increments
    @polymorphic
    def compute(x: int) -> int:
        with variant():
            return x + 1
        with variant():
            return x * 2


    def helper():
        return compute(2)
    """
).lstrip("\n")


def _exec(source: str) -> dict:
    scope: dict = {}
    exec(compile(source, "<built>", "exec"), scope)
    return scope


def test_every_factorial_variant_builds_to_the_same_result() -> None:
    labels: set[str] = set()
    for seed in range(40):
        engine = BuildEngine(BuildSettings(policy="random", seed=seed), environ=FIXED_ENV)
        plan = engine.build_source(FACTORIAL, path="factorial.py", build_counter=1)
        assert "with variant" not in plan.text
        assert _exec(plan.text)["factorial"](10) == 3628800
        [record] = plan.selections
        assert record.variant_count == 3
        labels.add(record.label)
    assert labels == {"iterative", "recursive", "reduce"}


def test_hash_policy_is_reproducible_and_counter_sensitive() -> None:
    settings = BuildSettings(policy="hash", obfuscate=False)
    engine = BuildEngine(settings, environ=FIXED_ENV)
    first = engine.build_source(COMPUTE, build_counter=1)
    again = BuildEngine(settings, environ=FIXED_ENV).build_source(COMPUTE, build_counter=1)
    assert first.text == again.text
    value = _exec(first.text)["compute"](5)
    assert value in {6, 10}
    others = {
        _exec(engine.build_source(COMPUTE, build_counter=counter).text)["compute"](5)
        for counter in range(2, 41)
    }
    assert ({6, 10} - {value}) <= others


def test_splice_keeps_surrounding_code_untouched() -> None:
    engine = BuildEngine(BuildSettings(obfuscate=False), environ=FIXED_ENV)
    plan = engine.build_source(COMPUTE, build_counter=1)
    head = "from polyvariant import polymorphic, variant\n\n# doubles or increments\n"
    tail = "\n\ndef helper():\n    return compute(2)\n"
    expected = {
        head + "def compute(x: int) -> int:\n    return x + 1\n" + tail,
        head + "def compute(x: int) -> int:\n    return x * 2\n" + tail,
    }
    assert plan.text in expected
    assert _exec(plan.text)["helper"]() in {3, 4}


def test_obfuscated_builds_keep_behaviour() -> None:
    for seed in range(25):
        engine = BuildEngine(BuildSettings(policy="hash"), environ=FIXED_ENV, rng=random.Random(seed))
        plan = engine.build_source(FACTORIAL, build_counter=seed)
        assert _exec(plan.text)["factorial"](6) == 720


def test_declarations_inside_blocks_are_spliced_in_place() -> None:
    source = textwrap.dedent(
        """
        import sys

        if sys.version_info >= (3,):
            @polymorphic
            def pick():
                with variant():
                    return "a"
                with variant():
                    return "a"
        """
    ).lstrip("\n")
    scope_source = "from polyvariant import polymorphic, variant\n" + source
    plan = BuildEngine(environ=FIXED_ENV).build_source(scope_source, build_counter=1)
    assert _exec(plan.text)["pick"]() == "a"


def test_module_without_declarations_is_returned_with_a_warning() -> None:
    plan = BuildEngine(environ=FIXED_ENV).build_source("x = 1\n", path="plain.py")
    assert plan.text == "x = 1\n"
    assert plan.selections == []
    assert plan.warnings and "plain.py" in plan.warnings[0]


def test_obfuscation_can_be_switched_off_by_environment() -> None:
    assert BuildEngine(environ={"POLYVARIANT_OBFUSCATE": "0"}).pipeline is None
    assert BuildEngine(environ={}).pipeline is not None
    assert BuildEngine(BuildSettings(obfuscate=False), environ={}).pipeline is None
    with env_scope({"POLYVARIANT_OBFUSCATE": "off"}):
        assert BuildEngine().pipeline is None


def test_build_paths_writes_outputs_counter_and_manifest(tmp_path: Path, write_module) -> None:
    write_module("src/pkg/math_ops.py", FACTORIAL)
    write_module("src/pkg/plain.py", "VALUE = 1\n")
    out_dir = tmp_path / "out"
    manifest = tmp_path / "manifest.json"
    engine = BuildEngine(BuildSettings(obfuscate=False), environ=FIXED_ENV)

    plans = engine.build_paths([tmp_path / "src"], out_dir=out_dir, manifest=manifest)
    assert [plan.output_path for plan in plans] == [
        out_dir / "pkg" / "math_ops.py",
        out_dir / "pkg" / "plain.py",
    ]
    assert (out_dir / BUILD_COUNTER_NAME).read_text() == "1"
    assert (out_dir / "pkg" / "plain.py").read_text() == "VALUE = 1\n"
    built = (out_dir / "pkg" / "math_ops.py").read_text()
    assert _exec(built)["factorial"](10) == 3628800
    payload = json.loads(manifest.read_text())
    assert payload["build_counter"] == 1
    assert payload["files"][0]["selections"][0]["function"] == "factorial"

    engine.build_paths([tmp_path / "src"], out_dir=out_dir)
    assert (out_dir / BUILD_COUNTER_NAME).read_text() == "2"


def test_build_paths_writes_nothing_when_a_file_is_malformed(tmp_path: Path, write_module) -> None:
    good = write_module("good.py", FACTORIAL)
    bad = write_module(
        "bad.py",
        """
        @polymorphic
        def f():
            with variant():
                return 1
            print("stray")
        """,
    )
    out_dir = tmp_path / "out"
    with pytest.raises(MalformedDeclaration):
        BuildEngine(environ=FIXED_ENV).build_paths([good, bad], out_dir=out_dir)
    assert not out_dir.exists()


def test_jittered_indentation_survives_the_splice() -> None:
    engine = BuildEngine(BuildSettings(policy="random", seed=0), environ=FIXED_ENV)
    engine.pipeline = ObfuscationPipeline(
        rules=[WhitespaceJitter(double_spaces=1.0, trailing_indent=0.0)],
        rng=random.Random(0),
    )
    plan = engine.build_source(COMPUTE, build_counter=1)
    head = "from polyvariant import polymorphic, variant\n\n# doubles or increments\n"
    tail = "\n\ndef helper():\n    return compute(2)\n"
    expected = {
        head + "def  compute(x:  int)  ->  int:\n        return  x  +  1\n" + tail,
        head + "def  compute(x:  int)  ->  int:\n        return  x  *  2\n" + tail,
    }
    assert plan.text in expected
    assert _exec(plan.text)["helper"]() in {3, 4}


def test_build_paths_rejects_inputs_sharing_an_output(tmp_path: Path, write_module) -> None:
    first = write_module("a/mod.py", COMPUTE)
    second = write_module("b/mod.py", FACTORIAL)
    out_dir = tmp_path / "out"
    engine = BuildEngine(BuildSettings(obfuscate=False), environ=FIXED_ENV)
    with pytest.raises(OutputCollision) as excinfo:
        engine.build_paths([first, second], out_dir=out_dir)
    assert "mod.py" in str(excinfo.value)
    assert not out_dir.exists()


def test_build_paths_cleans_up_when_a_write_fails(tmp_path: Path, write_module) -> None:
    write_module("src/a.py", COMPUTE)
    write_module("src/pkg/b.py", FACTORIAL)
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    # A file where the ``pkg`` output directory has to go.
    (out_dir / "pkg").write_text("")
    engine = BuildEngine(BuildSettings(obfuscate=False), environ=FIXED_ENV)
    with pytest.raises(OSError):
        engine.build_paths([tmp_path / "src"], out_dir=out_dir)
    assert sorted(entry.name for entry in out_dir.iterdir()) == ["pkg"]
    assert not (out_dir / BUILD_COUNTER_NAME).exists()
