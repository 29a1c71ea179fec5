"""
Integration tests for pglock.

These tests require an actual PostgreSQL instance, provisioned via
testcontainers. They are skipped automatically if Docker or testcontainers
is not available.

Run integration tests with:
    pytest tests/integration/ -v -m integration
"""
