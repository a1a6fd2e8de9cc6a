"""
Shared fixtures for rate-limit policy resolver tests.
"""

from pathlib import Path

import pytest
import structlog

from shared.metrics import PolicyMetrics

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo configure_logging calls made by CLI tests."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fixtures_dir() -> Path:
    """Directory holding the sample rule documents."""
    return FIXTURES_DIR


@pytest.fixture
def metrics() -> PolicyMetrics:
    """Metrics collector on its own registry."""
    return PolicyMetrics("ratelimit-test")
