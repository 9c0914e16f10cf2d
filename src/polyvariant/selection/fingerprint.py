"""Build fingerprints: the ordered entropy sources behind deterministic selection."""

from __future__ import annotations

import hashlib
import json
import logging
import sysconfig
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Mapping

from polyvariant.runtime.env_policy import (
    BUILD_TIMESTAMP_ENV,
    PACKAGE_NAME_ENV,
    PACKAGE_VERSION_ENV,
    PROFILE_ENV,
    SOURCE_DATE_EPOCH_ENV,
    TARGET_ENV,
    env_text,
    first_env_text,
    snapshot_env,
)

logger = logging.getLogger(__name__)

# Canonical hashing order. Changing it changes every hash-selected variant.
FINGERPRINT_SOURCES: tuple[str, ...] = (
    "function_name",
    "target_triple",
    "profile",
    "package_name",
    "package_version",
    "build_counter",
    "timestamp",
)


@dataclass(frozen=True)
class BuildFingerprint:
    """Present entropy sources, always held in canonical order."""

    sources: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> BuildFingerprint:
        unknown = sorted(set(values) - set(FINGERPRINT_SOURCES))
        if unknown:
            raise ValueError(f"unknown fingerprint source(s): {', '.join(unknown)}")
        ordered: list[tuple[str, str]] = []
        for name in FINGERPRINT_SOURCES:
            value = values.get(name)
            if value is None:
                continue
            text = str(value).strip()
            if text:
                ordered.append((name, text))
        return cls(sources=tuple(ordered))

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self.sources)

    def __len__(self) -> int:
        return len(self.sources)

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self.sources)

    def get(self, name: str, default: str | None = None) -> str | None:
        for key, value in self.sources:
            if key == name:
                return value
        return default

    def as_dict(self) -> dict[str, str]:
        return dict(self.sources)

    def with_source(self, name: str, value: object) -> BuildFingerprint:
        values: dict[str, object] = self.as_dict()
        values[name] = value
        return BuildFingerprint.from_mapping(values)

    def canonical_bytes(self) -> bytes:
        """Compact JSON list of ``[name, value]`` pairs, ASCII-escaped."""
        pairs = [[name, value] for name, value in self.sources]
        return json.dumps(pairs, separators=(",", ":"), ensure_ascii=True).encode("utf-8")

    def digest(self) -> bytes:
        return hashlib.sha256(self.canonical_bytes()).digest()

    def hexdigest(self) -> str:
        return self.digest().hex()


def _default_text(defaults: Mapping[str, object], key: str) -> str:
    value = defaults.get(key)
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


class FingerprintCollector:
    """Gathers build-identifying strings from the environment once per build.

    The environment is copied at construction, so every declaration in one
    build sees the same values. ``defaults`` fills sources the environment
    leaves empty (the ``[fingerprint]`` config section plus the project
    identity). The wall clock is read only when ``include_timestamp`` is set
    and no timestamp variable is present.
    """

    def __init__(
        self,
        *,
        environ: Mapping[str, str] | None = None,
        defaults: Mapping[str, object] | None = None,
        include_timestamp: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._env = snapshot_env(environ=environ)
        self._defaults = dict(defaults or {})
        timestamp = first_env_text(
            (BUILD_TIMESTAMP_ENV, SOURCE_DATE_EPOCH_ENV), environ=self._env
        )
        if not timestamp and include_timestamp:
            timestamp = str(int(clock()))
        self._timestamp = timestamp

    def _source(self, env_key: str, default_key: str) -> str:
        return env_text(env_key, environ=self._env) or _default_text(self._defaults, default_key)

    def collect(
        self,
        function_name: str,
        *,
        build_counter: int | None = None,
    ) -> BuildFingerprint:
        values: dict[str, object] = {
            "function_name": function_name,
            "target_triple": self._source(TARGET_ENV, "target") or sysconfig.get_platform(),
            "profile": self._source(PROFILE_ENV, "profile"),
            "package_name": self._source(PACKAGE_NAME_ENV, "package_name"),
            "package_version": self._source(PACKAGE_VERSION_ENV, "package_version"),
            "build_counter": build_counter,
            "timestamp": self._timestamp,
        }
        fingerprint = BuildFingerprint.from_mapping(values)
        logger.debug("fingerprint for %s: %s", function_name, fingerprint.as_dict())
        return fingerprint
