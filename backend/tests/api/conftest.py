"""API test specific fixtures."""

import pytest
from fastapi.testclient import TestClient

from reverie.config import ServerConfig, SimulationConfig
from reverie.main import create_app


@pytest.fixture
def app(tmp_path):
    """App backed by a throwaway SQLite file seeded from the bundled world data."""
    server_config = ServerConfig(database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    return create_app(server_config=server_config, simulation_config=SimulationConfig())


@pytest.fixture
def test_client(app):
    """Create FastAPI TestClient for API endpoint testing."""
    with TestClient(app) as client:
        yield client
