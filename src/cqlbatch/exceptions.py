"""
Exception classes for the CQL readers and writers.

Driver and network errors (``cassandra.*``) are never wrapped: they propagate
to the caller unchanged so the batch runtime can apply its own retry policy.
"""
from typing import Any


class CqlBatchError(Exception):
    """Base class for all cqlbatch errors.
    """


class ConfigurationError(CqlBatchError, ValueError):
    """Missing, invalid or inconsistent reader/writer property.

    Raised eagerly at construction or at ``open`` and never retried.
    """

    def __init__(self, message: str, name: str | None = None, value: Any = None) -> None:
        super().__init__(message)
        self.name = name
        self.value = value


class CoercionError(CqlBatchError, TypeError):
    """Error converting a value between a CQL wire type and a Python type.
    """


class ItemValidationError(CqlBatchError):
    """Item failed validation after being materialized from a row.
    """

    def __init__(self, field: str | None, value: Any, message: str) -> None:
        super().__init__(f'{message} (field={field!r}, value={value!r})')
        self.field = field
        self.value = value


class SessionError(CqlBatchError):
    """Error acquiring a session that was not raised by the driver itself.
    """


class ReaderStateError(CqlBatchError, RuntimeError):
    """Reader or writer used before ``open`` or after ``close``.
    """


__all__ = [
    'CqlBatchError',
    'ConfigurationError',
    'CoercionError',
    'ItemValidationError',
    'SessionError',
    'ReaderStateError',
]
