"""Shared fixtures: keep tests away from the user's real config and env."""

import pytest

_ENV_VARS = (
    "DESK_CLIENT_ID",
    "DESK_CLIENT_SECRET",
    "DESK_REFRESH_TOKEN",
    "DESK_ORG_ID",
    "DESK_DATA_CENTER",
)


@pytest.fixture(autouse=True)
def config_path(tmp_path, monkeypatch):
    """Point the config file at a temp dir and clear credential env vars."""
    from desk_analytics import client, operations

    path = tmp_path / "config.json"
    monkeypatch.setattr(client, "CONFIG_PATH", path)
    monkeypatch.setattr(operations, "CONFIG_PATH", path)
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    client.reset_client()
    return path
