"""Exception taxonomy for polyvariant builds and runtime dispatch."""

from __future__ import annotations


class PolyvariantError(Exception):
    """Base class for every error raised by polyvariant."""


class EmptyVariantSet(PolyvariantError):
    """A declaration (or a selection request) has zero candidate bodies."""


class MalformedDeclaration(PolyvariantError):
    """A declaration does not match the declaration grammar.

    The offending location is carried so the build can report it; ``line`` and
    ``column`` are 1-based when known.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        self.message = message
        self.path = path
        self.line = line
        self.column = column
        super().__init__(self._render())

    def _render(self) -> str:
        location = self.path or "<declaration>"
        if self.line is not None:
            location = f"{location}:{self.line}"
            if self.column is not None:
                location = f"{location}:{self.column}"
        return f"{location}: {self.message}"


class IndexOutOfRange(PolyvariantError, IndexError):
    """The selected index does not address a declared variant.

    Reaching this means a selection policy returned a value outside
    ``[0, count)``.
    """

    def __init__(self, index: int, count: int) -> None:
        self.index = index
        self.count = count
        super().__init__(f"variant index {index} out of range for {count} variant(s)")


class EmptyCatalog(PolyvariantError, LookupError):
    """Runtime dispatch was asked to pick from a catalog with no entries."""


class DuplicateCapability(PolyvariantError):
    """Two capabilities registered into one catalog share an identity."""


class ConfigError(PolyvariantError):
    """A configuration value has the wrong type or is out of range."""


class OutputCollision(PolyvariantError):
    """Two build inputs map to the same output file."""
