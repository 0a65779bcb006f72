"""Pytest configuration for unit tests - minimal version."""

import warnings


def pytest_configure(config):
    """Configure pytest environment before tests run."""
    warnings.filterwarnings("ignore", category=DeprecationWarning, module="aiohttp")
