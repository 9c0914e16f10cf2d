from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from polyvariant.config import (
    TomlTable,
    as_bool,
    config_bool,
    config_section,
    config_text,
    load_config,
    merge_payload,
    project_identity,
)
from polyvariant.exceptions import ConfigError
from polyvariant.selection.policy import POLICY_HASH, POLICY_NAMES

_FINGERPRINT_KEYS = ("target", "profile", "package_name", "package_version")


@dataclass(frozen=True)
class BuildSettings:
    policy: str = POLICY_HASH
    seed: int | str | None = None
    include_timestamp: bool = False
    obfuscate: bool = True
    fingerprint: Mapping[str, str] = field(default_factory=dict)
    obfuscation: TomlTable = field(default_factory=dict)

    def __post_init__(self) -> None:
        policy = (self.policy or "").strip().lower()
        if policy not in POLICY_NAMES:
            raise ConfigError(
                f"unknown selection policy {self.policy!r}; expected one of {', '.join(POLICY_NAMES)}"
            )
        object.__setattr__(self, "policy", policy)
        if self.seed is not None and (
            isinstance(self.seed, bool) or not isinstance(self.seed, (int, str))
        ):
            raise ConfigError(f"selection seed must be an integer or string, got {self.seed!r}")
        unknown = sorted(set(self.fingerprint) - set(_FINGERPRINT_KEYS))
        if unknown:
            raise ConfigError(f"unknown fingerprint setting(s): {', '.join(unknown)}")

    @classmethod
    def from_config(
        cls,
        root: Path | None = None,
        config_path: Path | None = None,
        overrides: Mapping[str, object] | None = None,
    ) -> BuildSettings:
        """Read ``polyvariant.toml`` and let non-``None`` ``overrides`` win.

        ``overrides`` takes ``policy``, ``seed``, ``include_timestamp`` and
        ``obfuscate``.
        """
        data = load_config(root=root, config_path=config_path)
        selection = merge_payload(dict(overrides or {}), config_section(data, "selection"))
        obfuscation = config_section(data, "obfuscation")

        fingerprint: dict[str, str] = {}
        identity = project_identity(root)
        for key, identity_key in (("package_name", "name"), ("package_version", "version")):
            if identity.get(identity_key):
                fingerprint[key] = str(identity[identity_key])
        section = config_section(data, "fingerprint")
        for key in _FINGERPRINT_KEYS:
            text = config_text(section, key)
            if text:
                fingerprint[key] = text

        obfuscate = config_bool(obfuscation, "enabled", True)
        if selection.get("obfuscate") is not None:
            obfuscate = as_bool(selection["obfuscate"])
        return cls(
            policy=str(selection.get("policy") or POLICY_HASH),
            seed=selection.get("seed"),
            include_timestamp=config_bool(selection, "include_timestamp", False),
            obfuscate=obfuscate,
            fingerprint=fingerprint,
            obfuscation=obfuscation,
        )


@dataclass(frozen=True)
class SelectionRecord:
    """One build-time decision: which variant a declaration kept."""

    function: str
    variant_count: int
    index: int
    policy: str
    label: str | None = None
    rules: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, object]:
        return {
            "function": self.function,
            "variant_count": self.variant_count,
            "index": self.index,
            "policy": self.policy,
            "label": self.label,
            "rules": list(self.rules),
        }


@dataclass
class BuildPlan:
    text: str
    selections: list[SelectionRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    source_path: Path | None = None
    output_path: Path | None = None
    build_counter: int | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "source": str(self.source_path) if self.source_path else None,
            "output": str(self.output_path) if self.output_path else None,
            "build_counter": self.build_counter,
            "selections": [record.as_dict() for record in self.selections],
            "warnings": list(self.warnings),
        }
