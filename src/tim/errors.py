"""Exception hierarchy shared across the tim package."""

from __future__ import annotations


class TimError(RuntimeError):
    """Base class for recoverable tim failures."""


class ConfigError(TimError):
    """Raised when the configuration file cannot be loaded."""


class PlanFileError(TimError):
    """Raised when a plan file cannot be parsed or validated."""

    def __init__(self, message: str, path: object | None = None) -> None:
        super().__init__(message)
        self.path = path


class PlanNotFoundError(TimError):
    """Raised when a plan argument does not resolve to a known plan."""


class PlanDirectoryNotFoundError(TimError):
    """Raised when the plan directory does not exist."""


class ReviewJsonParseError(TimError):
    """Raised when structured review output fails to parse or validate."""

    def __init__(self, message: str, raw_input: str | None = None) -> None:
        super().__init__(message)
        self.raw_input = raw_input


class ReviewFormatError(TimError):
    """Raised when a review result cannot be rendered."""
