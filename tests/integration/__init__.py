"""
Integration tests for the sessionlock library.

PostgreSQL tests need a database provisioned through testcontainers and are
skipped automatically when Docker is not available. SQLite tests run against
a temporary database file.

Run integration tests:
    pytest tests/integration/ -v

Run only PostgreSQL tests:
    pytest tests/integration/ -v -m postgres

Skip integration tests:
    pytest tests/ -v -m "not integration"
"""
