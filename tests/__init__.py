"""
tabledb test suite.

This package contains:
- unit/: Unit tests (memory and SQLite stores, no network)
- integration/: HTTP app and CLI tests
"""
