"""
Unit tests for sessionlock exceptions.
"""

import pytest

from sessionlock import LockError, SessionLockError


class TestLockError:
    """Tests for LockError."""

    def test_is_session_lock_error(self):
        assert issubclass(LockError, SessionLockError)
        assert issubclass(SessionLockError, Exception)

    def test_message_only(self):
        error = LockError("GET_LOCK() returned NULL")

        assert str(error) == "GET_LOCK() returned NULL"
        assert error.lock_name is None
        assert error.code is None

    def test_lock_name_and_code(self):
        error = LockError("RELEASE_LOCK() returned 0", lock_name="APP.LOCK", code=0)

        assert error.lock_name == "APP.LOCK"
        assert error.code == 0

    def test_cause_is_chained(self):
        """Wrapped errors keep the original as __cause__."""
        original = ConnectionError("connection reset")

        with pytest.raises(LockError) as exc_info:
            try:
                raise original
            except ConnectionError as e:
                raise LockError("Could not acquire change log lock") from e

        assert exc_info.value.__cause__ is original

    def test_catchable_as_base(self):
        with pytest.raises(SessionLockError):
            raise LockError("boom")
