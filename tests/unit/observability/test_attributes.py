"""
Unit tests for span attribute constants.
"""

from sessionlock.observability import attributes


def test_lock_attributes_are_namespaced():
    for name in [
        attributes.ATTR_LOCK_NAME,
        attributes.ATTR_LOCK_DRIVER,
        attributes.ATTR_LOCK_ACQUIRED,
        attributes.ATTR_LOCK_TIMEOUT,
        attributes.ATTR_LOCK_COUNT,
    ]:
        assert name.startswith("sessionlock.lock.")


def test_db_system_follows_semantic_conventions():
    assert attributes.ATTR_DB_SYSTEM == "db.system"


def test_all_exports_defined():
    for name in attributes.__all__:
        assert isinstance(getattr(attributes, name), str)
