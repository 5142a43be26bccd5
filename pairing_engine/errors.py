from __future__ import annotations

from collections.abc import Iterable


class EngineError(Exception):
    """Base exception for failures surfaced to the operator."""

    code = "engine_error"


class ValidationError(EngineError, ValueError):
    """Raised when operator input is malformed or not acceptable right now."""

    code = "validation"


class NotFoundError(EngineError):
    """Raised for unknown player or match ids."""

    code = "not_found"


class InvalidStateError(EngineError):
    """Raised when an operation conflicts with the current player or round state."""

    code = "invalid_state"


class DataIntegrityError(EngineError):
    """Raised when stored records contradict each other."""

    code = "data_integrity"


class LockTimeoutError(EngineError):
    """Raised when the engine lock could not be acquired in time."""

    code = "lock_timeout"


class CapacityExceededError(EngineError):
    """Raised when no table number is available under the configured maximum."""

    code = "capacity_exceeded"


class SchemaMismatchError(EngineError):
    """Raised when a stored item lacks attributes the engine relies on."""

    code = "schema_mismatch"

    def __init__(self, record_type: str, missing: Iterable[str]) -> None:
        self.record_type = record_type
        self.missing = sorted(missing)
        super().__init__(
            f"{record_type} item is missing required attributes: "
            + ", ".join(self.missing)
        )


__all__ = [
    "EngineError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "DataIntegrityError",
    "LockTimeoutError",
    "CapacityExceededError",
    "SchemaMismatchError",
]
