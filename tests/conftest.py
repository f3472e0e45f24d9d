"""
Pytest fixtures for stdio-bridge tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for package imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from stdio_bridge.configs.runtime import BridgeConfig  # noqa: E402

ECHO_CHILD = Path(__file__).parent / "fixtures" / "echo_child.py"


def make_config(**overrides) -> BridgeConfig:
    """BridgeConfig that launches the echo child with the current interpreter."""
    values = {
        "command": sys.executable,
        "args": ["-u", str(ECHO_CHILD)],
        "env": {},
        "request_timeout": 5.0,
        "shutdown_grace": 2.0,
    }
    values.update(overrides)
    return BridgeConfig(**values)


@pytest.fixture
def echo_config() -> BridgeConfig:
    """Configuration for a bridge around the echo child."""
    return make_config()


@pytest.fixture
def http_client(echo_config):
    """TestClient whose lifespan runs a bridge around the echo child."""
    from fastapi.testclient import TestClient

    from stdio_bridge.controllers.http import create_app

    app = create_app(echo_config)
    with TestClient(app) as client:
        yield client
