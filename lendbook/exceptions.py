"""Custom exception hierarchy for lendbook."""


class LendbookError(Exception):
    """Base exception for all lendbook errors."""


class EntityNotFoundError(LendbookError):
    """Raised when a referenced entity does not exist."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a foreign key reference is violated."""


class InvalidEntityStateError(LendbookError):
    """Raised when an entity is in an invalid state for the operation."""


class InstrumentLockedError(InvalidEntityStateError):
    """Raised when a write targets a manually locked instrument."""


class InstrumentClosedError(InvalidEntityStateError):
    """Raised when a write targets a closed instrument."""


class ConcurrentModificationError(LendbookError):
    """Raised when an instrument row changed since it was read."""


class PaymentRejectedError(LendbookError):
    """Raised when the allocator rejects a payment the caller targeted explicitly."""

    def __init__(self, message: str, kind: object = None) -> None:
        super().__init__(message)
        self.kind = kind


class ConfigurationError(LendbookError):
    """Raised when configuration is invalid or missing."""


class SinkError(LendbookError):
    """Raised when a sink operation fails."""
