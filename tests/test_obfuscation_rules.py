from __future__ import annotations

import random
import re
import textwrap

import pytest

from polyvariant.exceptions import ConfigError
from polyvariant.obfuscation.comments import DEFAULT_COMMENT_POOL, CommentInjection
from polyvariant.obfuscation.dead_code import DeadStatementInjection
from polyvariant.obfuscation.rename import IdentifierRandomization
from polyvariant.obfuscation.tokens import scan
from polyvariant.obfuscation.whitespace import WhitespaceJitter


def _src(text: str) -> str:
    return textwrap.dedent(text).lstrip("\n")


FACTORIAL = _src(
    '''
    def factorial(n):
        """Iterative factorial."""
        result = 1
        for i in range(2, n + 1):
            result *= i
        return result
    '''
)

STRINGS = _src(
    '''
    def describe(name, count=2):
        size = count + 1
        label = f"{name!r}: {count=} {size=}"
        block = """keep
        these    spaces"""
        parts = [name] * count
        joined = "-".join(parts)
        if count > 3:
            kind = "many"
        elif count > 1:
            kind = "some"
        else:
            kind = "one"
        try:
            value = int(name)
        except ValueError as exc:
            value = len(str(exc)) > 0
        finally:
            total = count
        return (label, block, joined, kind, value, total)
    '''
)

NESTED = _src(
    """
    def outer(values, scale=3):
        def helper(item, offset=1):
            shifted = item + offset
            return shifted * scale

        class Box:
            size = scale

            def area(self):
                return self.size * self.size

        doubled = [helper(v) for v in values]
        squares = {v: v * v for v in values}
        total = sum(doubled) + \\
            Box().area()
        if (n := len(values)) > 2:
            total += n
        first, *rest = sorted(squares)
        return total, first, rest, dict(total=total)
    """
)

GUARDED = _src(
    """
    def guarded(x):
        import contextlib
        with contextlib.nullcontext(x) as held:
            result = held * 2
        return result
    """
)

MATCHING = _src(
    """
    def classify(point):
        match point:
            case (0, 0):
                where = "origin"
            case (x, 0):
                where = f"x={x}"
            case _:
                where = "elsewhere"
        return where
    """
)

GLOBALS = _src(
    """
    COUNTER = 10

    def bump(step):
        global COUNTER
        COUNTER += step
        local = COUNTER * 2
        return local
    """
)

SHADOWED = _src(
    """
    import functools

    cache = functools.lru_cache(maxsize=None)
    limit = 4
    kind = int

    @cache
    def clamp(x: kind, cap=limit) -> kind:
        cache = {}
        limit = cap * 2
        kind = "clamped"
        cache[x] = min(x, limit)
        return kind, cache[x]
    """
)

SAMPLES = [
    (FACTORIAL, "factorial", [(0,), (5,), (10,)]),
    (STRINGS, "describe", [("abc",), ("7", 5), ("x", 1)]),
    (NESTED, "outer", [([1, 2, 3],), ([4],)]),
    (GUARDED, "guarded", [(4,)]),
    (MATCHING, "classify", [((0, 0),), ((3, 0),), ((1, 1),)]),
    (GLOBALS, "bump", [(3,)]),
    (SHADOWED, "clamp", [(1,), (10,), (3, 1)]),
]

RULES = [
    WhitespaceJitter(double_spaces=1.0, trailing_indent=1.0),
    WhitespaceJitter(),
    CommentInjection(probability=1.0),
    DeadStatementInjection(probability=1.0),
    IdentifierRandomization(probability=1.0),
]


def _results(source: str, name: str, calls):
    outputs = []
    for args in calls:
        scope: dict = {}
        exec(compile(source, "<rule>", "exec"), scope)
        outputs.append(scope[name](*args))
    return outputs


@pytest.mark.parametrize("rule", RULES, ids=lambda rule: rule.name)
@pytest.mark.parametrize("source,name,calls", SAMPLES, ids=[s[1] for s in SAMPLES])
def test_rules_keep_source_valid_and_results_equal(rule, source, name, calls) -> None:
    expected = _results(source, name, calls)
    for seed in range(25):
        mutated = rule.transform(source, random.Random(seed))
        assert _results(mutated, name, calls) == expected, mutated


@pytest.mark.parametrize("rule", RULES, ids=lambda rule: rule.name)
def test_rules_leave_untokenizable_text_alone(rule) -> None:
    broken = "def f(:\n    return '\n"
    assert rule.transform(broken, random.Random(0)) == broken


def test_scan_rejects_bad_tokens() -> None:
    assert scan("x = '\n") is None
    assert scan("x = 1\n") is not None


def test_whitespace_doubles_runs_between_tokens_only() -> None:
    rule = WhitespaceJitter(double_spaces=1.0, trailing_indent=0.0)
    source = "def f():\n    return 'a b'\n"
    assert rule.transform(source, random.Random(0)) == "def  f():\n        return  'a b'\n"


def test_whitespace_pads_line_ends_outside_tokens() -> None:
    rule = WhitespaceJitter(double_spaces=0.0, trailing_indent=1.0)
    source = "s = '''a\nb'''\nt = 1 + \\\n    2\n"
    assert rule.transform(source, random.Random(0)) == "s = '''a\nb'''    \nt = 1 + \\\n    2    \n"


def test_comment_injection_uses_pool_and_indentation() -> None:
    rule = CommentInjection(probability=1.0, min_count=3, max_count=3)
    mutated = rule.transform(FACTORIAL, random.Random(4))
    original = FACTORIAL.splitlines()
    lines = mutated.splitlines()
    assert len(lines) == len(original) + 3
    added = [line for line in lines if line.strip().startswith("#")]
    assert len(added) == 3
    for line in added:
        assert line.strip() in DEFAULT_COMMENT_POOL
    for index, line in enumerate(lines[:-1]):
        if line.strip().startswith("#"):
            following = next(item for item in lines[index:] if not item.strip().startswith("#"))
            assert line[: len(line) - len(line.lstrip())] == following[
                : len(following) - len(following.lstrip())
            ]


def test_comment_injection_never_splits_a_string() -> None:
    rule = CommentInjection(probability=1.0, min_count=4, max_count=4)
    source = 'x = """one\ntwo\nthree"""\n'
    for seed in range(30):
        mutated = rule.transform(source, random.Random(seed))
        scope: dict = {}
        exec(mutated, scope)
        assert scope["x"] == "one\ntwo\nthree"


_DEAD = re.compile(r"^\s+(_v\d+ = 0|_unused\d+ = \d+|_tmp\d+ = 1 if True else 0)$")


def test_dead_statements_land_inside_the_body() -> None:
    rule = DeadStatementInjection(probability=1.0, min_count=2, max_count=2)
    for seed in range(20):
        lines = rule.transform(FACTORIAL, random.Random(seed)).splitlines()
        assert lines[:2] == FACTORIAL.splitlines()[:2]
        assert len([line for line in lines if _DEAD.match(line)]) == 2


def test_dead_statements_skip_module_and_class_scope() -> None:
    rule = DeadStatementInjection(probability=1.0)
    for source in ("x = 1\ny = 2\n", "class A:\n    x = 1\n    y = 2\n"):
        assert rule.transform(source, random.Random(0)) == source


def test_dead_statements_never_split_a_decorator_from_its_function() -> None:
    rule = DeadStatementInjection(probability=1.0, min_count=3, max_count=3)
    source = "def f():\n    @staticmethod\n    def g():\n        pass\n    return g\n"
    for seed in range(30):
        lines = rule.transform(source, random.Random(seed)).splitlines()
        position = lines.index("    @staticmethod")
        assert lines[position + 1] == "    def g():"


def test_dead_statement_names_do_not_collide() -> None:
    rule = DeadStatementInjection(probability=1.0, min_count=3, max_count=3)
    taken = "\n".join(f"    _v{n} = {n}" for n in range(1, 100))
    source = f"def f():\n{taken}\n    return _v5\n"
    for seed in range(10):
        mutated = rule.transform(source, random.Random(seed))
        assert mutated.count("_v5 = ") == 1
        scope: dict = {}
        exec(mutated, scope)
        assert scope["f"]() == 5


def test_introspective_functions_are_left_alone() -> None:
    source = "def snapshot(a):\n    b = a + 1\n    return sorted(locals())\n"
    for rule in (DeadStatementInjection(probability=1.0), IdentifierRandomization(probability=1.0)):
        for seed in range(10):
            assert rule.transform(source, random.Random(seed)) == source


def test_rename_changes_locals_but_not_attributes_or_keywords() -> None:
    rule = IdentifierRandomization(probability=1.0)
    source = "def f(obj):\n    value = obj.value\n    return dict(value=value)\n"
    mutated = rule.transform(source, random.Random(1))
    assert mutated != source
    assert mutated.startswith("def f(obj):\n")
    assert "obj.value" in mutated
    assert "dict(value=" in mutated
    assert "dict(value=value)" not in mutated


def test_rename_respects_length_bounds() -> None:
    rule = IdentifierRandomization(probability=1.0, min_length=5, max_length=5)
    mutated = rule.transform("def f():\n    total = 1\n    return total\n", random.Random(2))
    new_name = mutated.splitlines()[1].split("=")[0].strip()
    assert len(new_name) == 5
    assert new_name.islower()


def test_rename_keeps_debug_format_names() -> None:
    rule = IdentifierRandomization(probability=1.0)
    source = 'def f():\n    size = 3\n    return f"{size=}"\n'
    assert rule.transform(source, random.Random(0)) == source


def test_rename_leaves_module_scope_header_names_alone() -> None:
    rule = IdentifierRandomization(probability=1.0)
    for seed in range(10):
        mutated = rule.transform(SHADOWED, random.Random(seed))
        header = mutated.split("@cache\ndef clamp(x: kind, cap=limit) -> kind:\n", 1)
        assert len(header) == 2, mutated
        assert header[0] == SHADOWED.split("@cache\n", 1)[0]
        assert "cache = {}" not in header[1]
        assert "limit = cap * 2" not in header[1]


@pytest.mark.parametrize(
    "factory",
    [
        lambda: WhitespaceJitter(probability=1.5),
        lambda: WhitespaceJitter(double_spaces=-0.1),
        lambda: CommentInjection(min_count=3, max_count=1),
        lambda: CommentInjection(pool=()),
        lambda: CommentInjection(pool=("not a comment",)),
        lambda: DeadStatementInjection(max_count="3"),
        lambda: IdentifierRandomization(min_length=0),
    ],
)
def test_rule_parameters_are_validated(factory) -> None:
    with pytest.raises(ConfigError):
        factory()


def test_rule_apply_respects_probability() -> None:
    rule = CommentInjection(probability=0.0)
    assert rule.apply(FACTORIAL, random.Random(0)) == FACTORIAL
