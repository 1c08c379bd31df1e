"""
NextStep Test Suite

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures (in-memory database, factories, mocks)
    └── unit/                # Engine components, models, config and the HTTP API

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run one module
    pytest backend/tests/unit/test_activity_router.py -v
"""
