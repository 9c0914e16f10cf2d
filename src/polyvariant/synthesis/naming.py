from __future__ import annotations

import builtins
import keyword
import random
import string
from typing import Iterable

RESERVED_NAMES = frozenset(keyword.kwlist) | frozenset(keyword.softkwlist) | frozenset(dir(builtins))

_MAX_ATTEMPTS = 64


def random_name(rng: random.Random, min_length: int = 2, max_length: int = 9) -> str:
    if min_length < 1 or max_length < min_length:
        raise ValueError(f"invalid name length bounds {min_length}..{max_length}")
    length = rng.randint(min_length, max_length)
    return "".join(rng.choice(string.ascii_lowercase) for _ in range(length))


def unique_random_name(
    rng: random.Random,
    existing: Iterable[str],
    *,
    min_length: int = 2,
    max_length: int = 9,
) -> str | None:
    """Draw a lowercase name that collides with nothing in ``existing``.

    Returns ``None`` when the bounds leave no room after a fixed number of
    draws, so callers can keep the original name.
    """
    taken = set(existing)
    for _ in range(_MAX_ATTEMPTS):
        name = random_name(rng, min_length, max_length)
        if name in taken or name in RESERVED_NAMES:
            continue
        return name
    return None


def unique_suffixed_name(
    rng: random.Random,
    prefix: str,
    existing: Iterable[str],
    *,
    low: int = 1,
    high: int = 99,
) -> str:
    taken = set(existing)
    for _ in range(_MAX_ATTEMPTS):
        name = f"{prefix}{rng.randint(low, high)}"
        if name not in taken:
            return name
    counter = high + 1
    while f"{prefix}{counter}" in taken:
        counter += 1
    return f"{prefix}{counter}"
