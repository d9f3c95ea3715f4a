"""Error kinds raised by the load engine.

Mapping-time errors abort a run before any row is read. Per-row errors are
caught by the LoadSession and attached to the record being populated.
"""

from typing import Any, Iterable


class LoadError(Exception):
    """Base class for all load engine errors."""


class BadFile(LoadError, FileNotFoundError):
    """The file to load does not exist."""


class UnsupportedFileType(LoadError, ValueError):
    """No row source is available for the file extension."""


class MappingDefinitionError(LoadError):
    """Headers could not be reconciled with the target class operators."""

    def __init__(self, message: str, unmapped: Iterable[str] = ()):
        super().__init__(message)
        self.unmapped = list(unmapped)


class MissingMandatoryError(LoadError):
    """A mandatory operator has no mapped header."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            f"Mandatory columns missing: {', '.join(self.missing)}"
        )


class AssignmentFailure(LoadError):
    """A value could not be assigned after every conversion was tried."""

    def __init__(self, operator: str, value: Any):
        self.operator = operator
        self.value = value
        super().__init__(f"Failed to assign [{value!r}] to {operator}")


class AssociationResolutionError(LoadError):
    """An association segment cannot be looked up."""


class PersistenceFailure(LoadError):
    """A record failed to save."""
