"""Transcription service test suite.

Test Structure:
    tests/
    ├── conftest.py          # Shared fixtures for all tests
    ├── unit/                # Unit tests (no external dependencies)
    └── integration/         # Integration tests (app + in-memory database)

Run all tests:
    pytest
"""
