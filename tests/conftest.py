# -*- coding: utf-8 -*-
"""
Shared test fixtures for the idlesync tests.
"""

import sys
from pathlib import Path

# Ensure project root is importable without pip install
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from config_data import Settings
from tests.helpers import FakeGateway
from tests.helpers import make_account


@pytest.fixture
def settings():
    return Settings(retry=5, idle_timeout=10, accounts=(make_account(),))


@pytest.fixture
def gateway_factory():
    """Factory fixture for fake gateways."""
    return FakeGateway
