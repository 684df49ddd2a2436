"""
Test suite for the storefront back office.

Test categories:
- unit: domain rules and single services with mocked channels
- integration: lifecycle jobs and repositories against in-memory SQLite
- api: FastAPI routes and the /ws endpoint
"""
