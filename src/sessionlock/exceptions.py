"""Library exceptions for the sessionlock package."""


class SessionLockError(Exception):
    """Base exception for sessionlock library."""

    pass


class LockError(SessionLockError):
    """
    Raised when a lock operation cannot be completed.

    This is the single failure type callers of the lock service see. It covers:
    - Protocol errors: the backend answered with a recognized but unexpected
      status code (deadlock, parameter error, lock not owned, ...)
    - Connectivity and SQL errors: the original exception is chained as
      ``__cause__``
    - Exhausted waits in ``SessionLockService.wait_for_lock``

    Plain contention (lock held by another session) is never an error; it is
    reported as ``False`` from ``acquire_lock``.

    Attributes:
        lock_name: Name of the lock resource involved, when known
        code: Backend status code that triggered the error, when there is one
    """

    def __init__(
        self,
        message: str,
        *,
        lock_name: str | None = None,
        code: int | None = None,
    ) -> None:
        self.lock_name = lock_name
        self.code = code
        super().__init__(message)


__all__ = [
    "LockError",
    "SessionLockError",
]
