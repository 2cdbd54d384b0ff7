"""Error taxonomy for the provenance ledger.

Every error raised by the ledger core derives from ``TimeShardsError``.
None of them is auto-corrected: callers decide whether to retry, surface,
or abort.
"""

from __future__ import annotations


class TimeShardsError(RuntimeError):
    """Base class for ledger errors."""


class RecordValidationError(TimeShardsError):
    """A field of an imported record was malformed and has been defaulted.

    Never fatal to an import: instances are collected on the import result
    rather than raised.
    """

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class ImmutabilityViolation(TimeShardsError):
    """Attempted edit or delete of a sealed (or confirmed) record."""


class ChainIntegrityError(TimeShardsError):
    """A recomputed entry hash or chain link does not match the stored one."""


class ProofAuthorityError(TimeShardsError):
    """The proof authority was unreachable, timed out, or rejected a request.

    Retryable. No record is mutated when this is raised.
    """


class PersistenceError(TimeShardsError):
    """The blob store could not be read or written."""


class InvalidSealTransitionError(TimeShardsError):
    """A seal lifecycle transition not allowed from the record's state."""


class UnknownProjectError(TimeShardsError, KeyError):
    """No project with the given id exists in the ledger."""

    def __str__(self) -> str:
        return RuntimeError.__str__(self)


class UnknownRecordError(TimeShardsError, KeyError):
    """No record with the given id exists in the project."""

    def __str__(self) -> str:
        return RuntimeError.__str__(self)


class DocumentFormatError(TimeShardsError, ValueError):
    """An import document is not JSON or has no recognisable project list."""
