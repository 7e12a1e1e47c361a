class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class InvalidTransitionError(ValidationError):
    """Raised when a status change has no defined transition."""

    def __init__(self, entity: str, current, target):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity}: no transition from {_label(current)} to {_label(target)}")


class OverlapError(ValidationError):
    """Raised when a date range collides with an existing active record."""

    def __init__(self, message: str, *, conflicting_id: str | None = None):
        self.conflicting_id = conflicting_id
        super().__init__(message)


class StoreError(DomainError):
    """Base exception for failures reported by the record store."""


class NotFoundError(StoreError):
    """Raised when an id does not resolve to a stored record."""

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class DuplicateKeyError(StoreError):
    """Raised when a write would break a uniqueness constraint."""

    def __init__(self, message: str, *, constraint: str | None = None):
        self.constraint = constraint
        super().__init__(message)


class InvalidReferenceError(StoreError):
    """Raised when a foreign reference points to a missing or inactive record."""


class DependentRecordsError(InvalidReferenceError):
    """Raised when a delete is restricted by records that still reference the target."""


class ConcurrencyConflictError(StoreError):
    """Raised when an optimistic update loses against a concurrent writer."""


class StorageUnavailableError(StoreError):
    """Raised when the database cannot be reached. Callers may retry with backoff."""


class TransientContentionError(StorageUnavailableError):
    """Lock contention (deadlock, lock wait timeout, busy database)."""


class QueryTimeoutError(StoreError):
    """Raised when a read exceeds its time budget."""


def _label(value) -> str:
    return getattr(value, "value", value)
