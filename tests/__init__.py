"""
Test suite for Collection Import.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_row_mapper.py -v
"""
