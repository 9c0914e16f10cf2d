from __future__ import annotations

import logging
import random
import threading
from typing import Callable, Generic, Iterator, Sequence, TypeVar

from polyvariant.dispatch.capability import Capability, FunctionCapability
from polyvariant.exceptions import DuplicateCapability, EmptyCatalog, IndexOutOfRange
from polyvariant.selection.policy import SelectionPolicy

logger = logging.getLogger(__name__)

I = TypeVar("I")
O = TypeVar("O")


class Catalog(Generic[I, O]):
    """Immutable, ordered set of capabilities sharing one input/output shape."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Sequence[Capability[I, O]] = ()) -> None:
        entries = tuple(entries)
        seen: set[str] = set()
        for entry in entries:
            identity = entry.identity()
            if identity in seen:
                raise DuplicateCapability(f"capability {identity!r} registered twice")
            seen.add(identity)
        object.__setattr__(self, "_entries", entries)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __iter__(self) -> Iterator[Capability[I, O]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> Capability[I, O]:
        return self._entries[index]

    def __repr__(self) -> str:
        return f"Catalog({list(self.identities())!r})"

    def identities(self) -> tuple[str, ...]:
        return tuple(entry.identity() for entry in self._entries)

    def choose(self, policy: SelectionPolicy) -> Capability[I, O]:
        """Pick one entry with a selection policy, once, ahead of use."""
        if not self._entries:
            raise EmptyCatalog("cannot choose from an empty catalog")
        index = policy.select(len(self._entries))
        if not 0 <= index < len(self._entries):
            raise IndexOutOfRange(index, len(self._entries))
        return self._entries[index]


class CatalogBuilder(Generic[I, O]):
    def __init__(self) -> None:
        self._entries: list[Capability[I, O]] = []

    def register(self, capability: Capability[I, O]) -> CatalogBuilder[I, O]:
        identity = capability.identity()
        if identity in {entry.identity() for entry in self._entries}:
            raise DuplicateCapability(f"capability {identity!r} registered twice")
        self._entries.append(capability)
        return self

    def register_function(self, name: str, func: Callable[[I], O]) -> CatalogBuilder[I, O]:
        return self.register(FunctionCapability(name=name, func=func))

    def build(self) -> Catalog[I, O]:
        return Catalog(self._entries)


_local = threading.local()


def _thread_rng() -> random.Random:
    rng = getattr(_local, "rng", None)
    if rng is None:
        rng = random.Random()
        _local.rng = rng
    return rng


def dispatch(
    catalog: Catalog[I, O],
    value: I,
    *,
    rng: random.Random | None = None,
) -> tuple[O, str]:
    """Run a uniformly chosen entry on ``value``; return its output and identity.

    Without ``rng`` each thread draws from its own generator, so concurrent
    callers never share random state.
    """
    if len(catalog) == 0:
        raise EmptyCatalog("cannot dispatch on an empty catalog")
    source = rng if rng is not None else _thread_rng()
    entry = catalog[source.randrange(len(catalog))]
    identity = entry.identity()
    logger.debug("dispatching to %s", identity)
    return entry.execute(value), identity
