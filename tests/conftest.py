"""
pytest configuration and fixtures for the ISO 8583 decoder tests.

Provides reusable fixtures for:
- Sample catalog files
- Message factories
- Hypothesis property-based testing configuration
"""

import logging
import os
import sys
from pathlib import Path

import pytest

# Add project paths
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))
sys.path.insert(0, str(Path(__file__).parent))

from hypothesis import settings, Verbosity, Phase

# Default profile: balanced speed and coverage
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
)

# CI profile: more thorough testing
settings.register_profile(
    "ci",
    max_examples=500,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)

# Dev profile: fast iteration
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
)

# Debug profile: verbose output
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture
def sample_catalog_path():
    """Path to the shipped sample acquirer catalog."""
    return PROJECT_ROOT / "catalogs" / "acquirer_sample.yaml"


@pytest.fixture
def message_factory():
    """
    Provide a factory for building messages against the default catalog.

    Usage:
        def test_purchase(message_factory):
            text = message_factory.build("0200", {3: "000000"})
    """
    from message_factory import MessageFactory
    return MessageFactory()


@pytest.fixture
def restore_root_logging():
    """Undo handler/level changes made by CLI entry points."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
