"""Shared fixtures for the agent tests"""

import pytest

from fakes import make_config
from vorio_agent.config import AppConfig


@pytest.fixture
def app_config() -> AppConfig:
    return make_config()
