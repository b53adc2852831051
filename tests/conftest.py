"""
Pytest configuration and fixtures for Automodcord tests.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to path so imports work, and this directory for the shared fakes
tests_path = Path(__file__).parent
src_path = tests_path.parent / "src"
sys.path.insert(0, str(src_path))
sys.path.insert(0, str(tests_path))

from fakes import FakeClock, FakeConfigRepository, FakeRuleStore, make_guild  # noqa: E402


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def guild():
    return make_guild()


@pytest.fixture
def rule_store():
    return FakeRuleStore()


@pytest.fixture
def config_repo():
    return FakeConfigRepository()
