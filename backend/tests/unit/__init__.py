"""Unit tests for the transcription service.

Unit tests should:
- Not require external services (database, provider)
- Test individual functions and classes in isolation
- Use mocks for dependencies
- Be fast to execute
"""
