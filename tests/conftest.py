"""
Configuration for pytest.

This file provides common fixtures and configuration for all tests.
"""

import pytest

import flatauth.config
import flatauth.credentials.store
from flatauth.credentials import CredentialStore


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from real config files, env vars and singletons."""
    for var in (
        "FLATAUTH_CONFIG",
        "FLATAUTH_CONFIG_FILE",
        "FLATAUTH_USERS_FILE",
        "FLATAUTH_LOG_LEVEL",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(flatauth.config, "_config_loader", None)
    monkeypatch.setattr(flatauth.credentials.store, "_instance", None)


@pytest.fixture
def users_file(tmp_path):
    """An empty users file."""
    path = tmp_path / "users.properties"
    path.write_text("", encoding="utf-8")
    return path


@pytest.fixture
def store(users_file):
    """A store backed by an empty users file."""
    return CredentialStore(users_file)


@pytest.fixture
def read_records():
    """Return a reader for the non-comment lines of a users file."""

    def _read(path):
        lines = path.read_text(encoding="utf-8").splitlines()
        return [line for line in lines if line and not line.startswith("#")]

    return _read
