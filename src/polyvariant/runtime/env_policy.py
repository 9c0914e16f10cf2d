from __future__ import annotations

import os
from typing import Mapping, Sequence

_FALSEY_VALUES = {"0", "false", "no", "off"}

TARGET_ENV = "POLYVARIANT_TARGET"
OBFUSCATE_ENV = "POLYVARIANT_OBFUSCATE"
PROFILE_ENV = "POLYVARIANT_PROFILE"
PACKAGE_NAME_ENV = "POLYVARIANT_PACKAGE_NAME"
PACKAGE_VERSION_ENV = "POLYVARIANT_PACKAGE_VERSION"
BUILD_TIMESTAMP_ENV = "POLYVARIANT_BUILD_TIMESTAMP"
SOURCE_DATE_EPOCH_ENV = "SOURCE_DATE_EPOCH"

FINGERPRINT_ENV_KEYS: tuple[str, ...] = (
    TARGET_ENV,
    PROFILE_ENV,
    PACKAGE_NAME_ENV,
    PACKAGE_VERSION_ENV,
    BUILD_TIMESTAMP_ENV,
    SOURCE_DATE_EPOCH_ENV,
)


def env_text(
    name: str,
    *,
    default: str = "",
    environ: Mapping[str, str] | None = None,
) -> str:
    source = os.environ if environ is None else environ
    return str(source.get(name, default)).strip()


def first_env_text(
    keys: Sequence[str],
    *,
    environ: Mapping[str, str] | None = None,
) -> str:
    for key in keys:
        value = env_text(key, environ=environ)
        if value:
            return value
    return ""


def snapshot_env(
    keys: Sequence[str] = FINGERPRINT_ENV_KEYS,
    *,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Copy the fingerprint-relevant variables out of the environment once."""
    snapshot: dict[str, str] = {}
    for key in keys:
        value = env_text(key, environ=environ)
        if value:
            snapshot[key] = value
    return snapshot


def env_enabled_default_true(
    name: str,
    *,
    environ: Mapping[str, str] | None = None,
) -> bool:
    source = os.environ if environ is None else environ
    text = source.get(name)
    if text is None:
        return True
    return str(text).strip().lower() not in _FALSEY_VALUES

