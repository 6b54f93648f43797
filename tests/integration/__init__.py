"""
Integration tests for the advisory_locking library.

These tests require a PostgreSQL server, either via:
- ADVISORY_LOCKING_TEST_DATABASE_URL pointing at an existing server
- testcontainers (automatic container provisioning)

Tests are skipped automatically if no server is available.

Run integration tests:
    pytest tests/integration/ -v

Skip integration tests:
    pytest tests/ -v -m "not integration"
"""
