"""Exception hierarchy for batchguard."""


class BatchGuardError(Exception):
    """Base class for all batchguard errors."""


class LockError(BatchGuardError):
    """Base class for distributed lock errors."""

    def __init__(self, key: str, message: str):
        super().__init__(message)
        self.key = key


class LockStoreError(LockError):
    """
    Redis was unreachable or answered with a protocol error.

    Never raised for plain contention; a held lock is reported as a
    ``None`` token from ``acquire_lock``.
    """

    def __init__(self, key: str, operation: str, cause: Exception):
        super().__init__(key, f"Lock store error during {operation} for '{key}': {cause}")
        self.operation = operation
        self.cause = cause


class LockUnavailableError(LockError):
    """Raised by ``with_lock`` when another holder's lease is live."""

    def __init__(self, key: str):
        super().__init__(key, f"Failed to acquire lock for '{key}'")
