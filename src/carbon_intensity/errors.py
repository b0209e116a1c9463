from typing import Iterable


class CIEngineError(Exception):
    """Base class for all carbon intensity engine errors."""


class InvalidInputError(CIEngineError, ValueError):
    """
    Caller supplied a value the engine rejects at the boundary.
    Recoverable by correcting the input; never retried automatically.
    """


def _allowed(options: Iterable[str]) -> str:
    return ", ".join(options)


class InvalidCategoryError(InvalidInputError):
    def __init__(self, value, options: Iterable[str]):
        self.value = value
        super().__init__(f"Unknown feedstock category {value!r}. Expected one of: {_allowed(options)}")


class InvalidMethodologyError(InvalidInputError):
    def __init__(self, value, options: Iterable[str]):
        self.value = value
        super().__init__(f"Unknown methodology {value!r}. Expected one of: {_allowed(options)}")


class InvalidDataQualityError(InvalidInputError):
    def __init__(self, value, options: Iterable[str]):
        self.value = value
        super().__init__(f"Unknown data quality level {value!r}. Expected one of: {_allowed(options)}")


class InvalidVerificationLevelError(InvalidInputError):
    def __init__(self, value, options: Iterable[str]):
        self.value = value
        super().__init__(f"Unknown verification level {value!r}. Expected one of: {_allowed(options)}")


class InvalidTransportModeError(InvalidInputError):
    def __init__(self, value, options: Iterable[str]):
        self.value = value
        super().__init__(f"Unknown transport mode {value!r}. Expected one of: {_allowed(options)}")


class IncompleteInputError(CIEngineError):
    """
    A sub-category is still non-numeric after default resolution.
    Indicates a registry or caller defect; fatal and non-retryable.
    """

    def __init__(self, field: str, value=None):
        self.field = field
        self.value = value
        super().__init__(f"Emission field '{field}' did not resolve to a finite number (got {value!r})")


class RegistryError(CIEngineError):
    """Registry tables are not total or hold non-finite data."""
