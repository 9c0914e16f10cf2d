from __future__ import annotations

import random
from dataclasses import dataclass
from typing import ClassVar

from polyvariant.exceptions import ConfigError


def check_probability(owner: str, field_name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{owner}.{field_name} must be a number, got {value!r}")
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{owner}.{field_name} must be within [0, 1], got {value!r}")


def check_bounds(owner: str, low_name: str, low: int, high_name: str, high: int, *, floor: int) -> None:
    for name, value in ((low_name, low), (high_name, high)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{owner}.{name} must be an integer, got {value!r}")
    if low < floor or high < low:
        raise ConfigError(
            f"{owner}: need {floor} <= {low_name} <= {high_name}, got {low}..{high}"
        )


@dataclass(frozen=True)
class ObfuscationRule:
    """A named text transform that fires with its own probability.

    ``transform`` must return a text with the same runtime behaviour as its
    input, and must return the input unchanged when it finds no safe site.
    """

    probability: float = 1.0
    name: ClassVar[str] = "rule"

    def __post_init__(self) -> None:
        check_probability(self.name, "probability", self.probability)

    def triggered(self, rng: random.Random) -> bool:
        return rng.random() < self.probability

    def transform(self, text: str, rng: random.Random) -> str:
        raise NotImplementedError

    def apply(self, text: str, rng: random.Random) -> str:
        if not self.triggered(rng):
            return text
        return self.transform(text, rng)
