"""Pytest configuration and shared fixtures."""

import tempfile
from pathlib import Path

import pytest  # type: ignore[import-not-found]


@pytest.fixture  # type: ignore[misc]
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
