"""
Unit Tests

Unit tests run without external services. Database-backed tests use an
in-memory SQLite database (aiosqlite) created per test.
"""
