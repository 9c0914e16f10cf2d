from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import ClassVar, Protocol, runtime_checkable

from polyvariant.exceptions import ConfigError, EmptyVariantSet
from polyvariant.selection.fingerprint import BuildFingerprint

POLICY_RANDOM = "random"
POLICY_HASH = "hash"
POLICY_NAMES: tuple[str, ...] = (POLICY_HASH, POLICY_RANDOM)


@runtime_checkable
class SelectionPolicy(Protocol):
    name: ClassVar[str]

    def select(self, count: int) -> int: ...


def _require_count(count: int) -> None:
    if count < 1:
        raise EmptyVariantSet(f"cannot select from {count} variant(s)")


@dataclass
class RandomUniform:
    """Uniform draw over ``[0, count)``; a new choice on every call."""

    rng: random.Random = field(default_factory=random.Random)
    name: ClassVar[str] = POLICY_RANDOM

    @classmethod
    def seeded(cls, seed: int | str | None) -> RandomUniform:
        return cls(rng=random.Random(seed))

    def select(self, count: int) -> int:
        _require_count(count)
        if count == 1:
            return 0
        return self.rng.randrange(count)


@dataclass(frozen=True)
class DeterministicHash:
    """Index derived from the SHA-256 of a build fingerprint.

    Identical fingerprints always give identical indices. The index is the
    first eight digest bytes modulo ``count``, so small counts carry a slight
    modulo bias.
    """

    fingerprint: BuildFingerprint
    name: ClassVar[str] = POLICY_HASH

    def select(self, count: int) -> int:
        _require_count(count)
        if count == 1:
            return 0
        digest = self.fingerprint.digest()
        return int.from_bytes(digest[:8], "big") % count


def policy_for(
    name: str,
    *,
    fingerprint: BuildFingerprint | None = None,
    rng: random.Random | None = None,
) -> SelectionPolicy:
    key = (name or "").strip().lower()
    if key == POLICY_HASH:
        if fingerprint is None:
            raise ConfigError("the hash policy needs a build fingerprint")
        return DeterministicHash(fingerprint=fingerprint)
    if key == POLICY_RANDOM:
        return RandomUniform(rng=rng) if rng is not None else RandomUniform()
    raise ConfigError(
        f"unknown selection policy {name!r}; expected one of {', '.join(POLICY_NAMES)}"
    )
