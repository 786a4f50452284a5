"""Shared fixtures for the engine and API test suites."""

import os
import tempfile

# Must be set before lunar_policy.api.database is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LPG_LOG_DIR", tempfile.mkdtemp(prefix="lpg-logs-"))
os.environ.pop("LPG_WIN_EV_THRESHOLD", None)
os.environ.pop("LPG_WIN_REP_THRESHOLD", None)

import pytest

from lunar_policy.config import GameSettings
from lunar_policy.engine.actions import add_player
from lunar_policy.engine.definitions import load_infrastructure_definitions
from lunar_policy.engine.reducer import apply_action
from lunar_policy.engine.utils import initialize_game_state


# ------------------------------------------------------------------
# Engine fixtures: no I/O beyond the packaged definitions
# ------------------------------------------------------------------

@pytest.fixture(scope="session")
def infra_defs():
    return load_infrastructure_definitions()


@pytest.fixture
def settings():
    """Default settings: EV threshold 250, REP threshold ignored."""
    return GameSettings()


@pytest.fixture
def setup_state(infra_defs, settings):
    """A game in Setup with one player per specialization (ids: alice, bob, cara)."""
    state = initialize_game_state("test-game")
    for player_id, name, specialization in [
        ("alice", "Alice", "Resource Extractor"),
        ("bob", "Bob", "Infrastructure Provider"),
        ("cara", "Cara", "Operations Manager"),
    ]:
        state, _ = apply_action(state, add_player(name, specialization, player_id), infra_defs, settings)
    return state


# ------------------------------------------------------------------
# API fixtures: in-memory SQLite, recreated for every test
# ------------------------------------------------------------------

@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from lunar_policy.api.database import drop_db, init_db
    from lunar_policy.api.main import app

    init_db()
    yield TestClient(app)
    drop_db()


@pytest.fixture
def auth_headers(client):
    response = client.post("/auth/register", json={
        "email": "facilitator@example.com",
        "username": "facilitator",
        "password": "moonbase-alpha",
    })
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
