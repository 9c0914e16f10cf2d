from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Generic, Protocol, TypeVar, runtime_checkable

I = TypeVar("I")
O = TypeVar("O")
I_contra = TypeVar("I_contra", contravariant=True)
O_co = TypeVar("O_co", covariant=True)


@runtime_checkable
class Capability(Protocol[I_contra, O_co]):
    """One live implementation of a behaviour."""

    def execute(self, value: I_contra) -> O_co:
        ...

    def identity(self) -> str:
        ...


class NamedCapability(ABC, Generic[I, O]):
    """Base for class-style implementations; the class name is the identity."""

    @abstractmethod
    def execute(self, value: I) -> O:
        raise NotImplementedError

    def identity(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class FunctionCapability(Generic[I, O]):
    """Adapts a plain callable to the capability interface."""

    name: str
    func: Callable[[I], O]

    def execute(self, value: I) -> O:
        return self.func(value)

    def identity(self) -> str:
        return self.name
