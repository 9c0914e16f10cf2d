"""Selection subpackage: fingerprints, the build counter and selection policies."""

from polyvariant.selection.counter import BUILD_COUNTER_NAME, BuildCounter
from polyvariant.selection.fingerprint import (
    FINGERPRINT_SOURCES,
    BuildFingerprint,
    FingerprintCollector,
)
from polyvariant.selection.policy import (
    POLICY_HASH,
    POLICY_NAMES,
    POLICY_RANDOM,
    DeterministicHash,
    RandomUniform,
    SelectionPolicy,
    policy_for,
)

__all__ = [
    "BUILD_COUNTER_NAME",
    "BuildCounter",
    "BuildFingerprint",
    "DeterministicHash",
    "FINGERPRINT_SOURCES",
    "FingerprintCollector",
    "POLICY_HASH",
    "POLICY_NAMES",
    "POLICY_RANDOM",
    "RandomUniform",
    "SelectionPolicy",
    "policy_for",
]
