"""Markers used in declaration sources.

The build replaces every ``@polymorphic`` function, so these only matter when
a declaration module is imported without being built: the decorator leaves
the function as written and ``variant`` blocks run in order, which means the
first block that returns decides the result.
"""

from __future__ import annotations

from contextlib import nullcontext
from typing import Callable, ContextManager, TypeVar, overload

F = TypeVar("F", bound=Callable[..., object])


@overload
def polymorphic(func: F) -> F: ...


@overload
def polymorphic(func: None = None) -> Callable[[F], F]: ...


def polymorphic(func=None):
    if func is None:
        return lambda inner: inner
    return func


def variant(label: str | None = None) -> ContextManager[None]:
    return nullcontext()
