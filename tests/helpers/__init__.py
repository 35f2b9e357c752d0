"""Test helper modules for the layercake test suite.

- bags: shared contracts and partial layers
- cache_utils: cache reset utilities for test isolation
"""
