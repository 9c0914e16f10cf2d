from __future__ import annotations

import sys
import textwrap
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from tests.env_helpers import cleared_polyvariant_env as _cleared_env
from tests.env_helpers import restore_env as _restore_env


@pytest.fixture(autouse=True)
def _clean_polyvariant_env():
    previous = _cleared_env()
    try:
        yield
    finally:
        _restore_env(previous)


@pytest.fixture
def write_module(tmp_path: Path):
    def _write(name: str, source: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
        return path

    return _write
