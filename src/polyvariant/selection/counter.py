from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

BUILD_COUNTER_NAME = "build_counter"


@dataclass(frozen=True)
class BuildCounter:
    """Integer persisted next to the build output, advanced once per build."""

    path: Path

    @classmethod
    def in_directory(cls, out_dir: Path) -> BuildCounter:
        return cls(path=Path(out_dir) / BUILD_COUNTER_NAME)

    def read(self) -> int:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return 0
        try:
            value = int(raw.strip())
        except ValueError:
            logger.warning("ignoring unreadable build counter in %s", self.path)
            return 0
        return value if value >= 0 else 0

    def store(self, value: int) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(str(value), encoding="utf-8")
        logger.debug("build counter %s set to %d", self.path, value)

    def advance(self) -> int:
        value = self.read() + 1
        self.store(value)
        return value
