"""
Exception hierarchy for converge_migrator.

Load-time problems (pattern catalog, mapping dictionary) abort the call that
triggered them. Per-file problems are recovered by the scan coordinator.
A mapping lookup that finds nothing is not an error and returns None.
"""

from __future__ import annotations


class MigratorError(Exception):
    """Base class for all converge_migrator errors."""


class ConfigurationError(MigratorError):
    """A pattern catalog or mapping dictionary could not be loaded."""


class ValidationError(ConfigurationError):
    """A mapping dictionary parsed but is structurally non-conformant."""


class FileAccessError(MigratorError):
    """A source file could not be read."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class MatcherFailure(MigratorError):
    """The pattern engine raised while matching content."""
