"""Exceptions raised by the CHS-DRG grouper."""


class DRGGrouperError(Exception):
    """Base class for grouper errors."""


class ConfigurationError(DRGGrouperError):
    """The grouping scheme is incomplete or inconsistent.

    Raised while loading reference tables, before any case is grouped.
    """

    def __init__(self, message: str, problems: list[str] | None = None):
        self.problems = list(problems or [])
        if self.problems:
            message = f"{message}:\n  " + "\n  ".join(self.problems)
        super().__init__(message)


class CaseValidationError(DRGGrouperError, ValueError):
    """A single case record is missing a required field."""
