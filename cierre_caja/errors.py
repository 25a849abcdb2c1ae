"""Exceptions raised by the cierre_caja backend.

Parsing and validation problems are not represented here: unparseable amounts
default to zero and negative amounts are clamped to zero, so they never reach
the caller as failures.
"""
from __future__ import annotations


class CierreCajaError(Exception):
    """Base class for every error surfaced by the package."""


class RepositoryError(CierreCajaError):
    """A persistence operation failed; nothing was written."""


class StorageUnavailable(RepositoryError):
    """The store could not be reached or failed while running the operation."""


class PermissionDenied(RepositoryError):
    """The store refused the operation, e.g. a read-only database."""


class RecordNotFound(RepositoryError):
    """No daily closing record exists for the given identifier."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Daily closing record {record_id!r} does not exist")
        self.record_id = record_id


class RecordRejected(RepositoryError):
    """The store rejected the record because it violates a constraint."""


class SubmitInProgress(CierreCajaError):
    """A submit was requested while a previous one is still outstanding."""


__all__ = [
    "CierreCajaError",
    "RepositoryError",
    "StorageUnavailable",
    "PermissionDenied",
    "RecordNotFound",
    "RecordRejected",
    "SubmitInProgress",
]
