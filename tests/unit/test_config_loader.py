"""
Unit tests for the YAML ConfigLoader and building a store from it.

The ``isolated_environment`` fixture runs every test in its own working
directory with a private HOME, so no real config.yaml is picked up.
"""

import textwrap

import pytest

import flatauth.config
from flatauth.config import ConfigError, ConfigLoader, get_config_loader
from flatauth.credentials import CredentialStore, get_credential_store


def write_config(path, body):
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


@pytest.fixture
def config_file(tmp_path, users_file):
    return write_config(
        tmp_path / "config.yaml",
        f"""
        auth_sources:
          - type: ldap
            options: {{}}
          - type: properties_file
            options:
              users_property_file: {users_file}
        logging:
          level: DEBUG
        """,
    )


def test_default_config_without_file(tmp_path):
    loader = ConfigLoader()
    assert loader.get_auth_sources() == []
    assert loader.get_properties_file_options() == {}
    assert loader.get_logging_config() == {"level": "INFO"}


def test_explicit_path(config_file, users_file):
    loader = ConfigLoader(config_file)
    assert loader.config_path == config_file
    options = loader.get_properties_file_options()
    assert options["users_property_file"] == str(users_file)
    assert loader.get_logging_config()["level"] == "DEBUG"


def test_found_in_working_directory(config_file):
    loader = ConfigLoader()
    assert loader.config_path.resolve() == config_file.resolve()


def test_env_var_path(tmp_path, monkeypatch, users_file):
    other = tmp_path / "elsewhere.yaml"
    write_config(
        other,
        f"""
        auth_sources:
          - type: properties_file
            options:
              users_property_file: {users_file}
        """,
    )
    monkeypatch.setenv("FLATAUTH_CONFIG", str(other))
    loader = ConfigLoader()
    assert loader.config_path == other


def test_missing_explicit_path_falls_back_to_defaults(tmp_path):
    loader = ConfigLoader(tmp_path / "nope.yaml")
    assert loader.config_path is None
    assert loader.get_auth_sources() == []


def test_working_directory_beats_user_directory(tmp_path):
    user_dir = tmp_path / "home" / ".config" / "flatauth"
    user_dir.mkdir(parents=True)
    write_config(user_dir / "config.yaml", "logging:\n  level: ERROR\n")
    write_config(tmp_path / "config.yaml", "logging:\n  level: WARNING\n")
    assert ConfigLoader().get_logging_config()["level"] == "WARNING"


def test_user_config_directory(tmp_path):
    user_dir = tmp_path / "home" / ".config" / "flatauth"
    user_dir.mkdir(parents=True)
    write_config(user_dir / "config.yaml", "logging:\n  level: ERROR\n")
    loader = ConfigLoader()
    assert loader.get_logging_config()["level"] == "ERROR"


def test_env_interpolation(tmp_path, monkeypatch):
    monkeypatch.setenv("USERS_DIR", str(tmp_path))
    write_config(
        tmp_path / "config.yaml",
        """
        auth_sources:
          - type: properties_file
            options:
              users_property_file: ${USERS_DIR}/users.properties
        """,
    )
    options = ConfigLoader().get_properties_file_options()
    assert options["users_property_file"] == f"{tmp_path}/users.properties"


def test_unset_env_var_left_in_place(tmp_path):
    write_config(
        tmp_path / "config.yaml",
        """
        auth_sources:
          - type: properties_file
            options:
              users_property_file: $NOT_A_REAL_VARIABLE_XYZ
        """,
    )
    options = ConfigLoader().get_properties_file_options()
    assert options["users_property_file"] == "${NOT_A_REAL_VARIABLE_XYZ}"


def test_invalid_yaml_raises(tmp_path):
    write_config(tmp_path / "config.yaml", "auth_sources: [unclosed\n")
    with pytest.raises(ConfigError):
        ConfigLoader()


def test_schema_violation_raises(tmp_path):
    write_config(
        tmp_path / "config.yaml",
        """
        auth_sources:
          - options:
              users_property_file: /tmp/users
        """,
    )
    with pytest.raises(ConfigError, match="auth_sources"):
        ConfigLoader()


def test_bad_log_level_raises(tmp_path):
    write_config(tmp_path / "config.yaml", "logging:\n  level: LOUD\n")
    with pytest.raises(ConfigError):
        ConfigLoader()


def test_get_config_loader_is_shared(config_file):
    assert get_config_loader() is get_config_loader()


def test_get_config_loader_with_path_replaces_instance(config_file, tmp_path):
    first = get_config_loader()
    other = write_config(tmp_path / "other.yaml", "logging:\n  level: ERROR\n")
    second = get_config_loader(other)
    assert second is not first
    assert flatauth.config._config_loader is second


# ---------------------------------------------------------------------------
# Building the store from configuration
# ---------------------------------------------------------------------------

class TestStoreFromConfig:
    def test_properties_file_source(self, config_file, users_file):
        store = CredentialStore.from_config(ConfigLoader(config_file))
        assert store.available
        assert store.users_file == users_file
        store.add_user("alice", "secret", {"admin"})
        assert "alice=secret,admin" in users_file.read_text(encoding="utf-8")

    def test_no_source_disables_store(self, caplog):
        with caplog.at_level("INFO"):
            store = CredentialStore.from_config(ConfigLoader())
        assert not store.supports_add()
        assert "User management will be disabled" in caplog.text

    def test_env_var_overrides_path(self, config_file, tmp_path, monkeypatch):
        override = tmp_path / "override.properties"
        monkeypatch.setenv("FLATAUTH_USERS_FILE", str(override))
        store = CredentialStore.from_config(ConfigLoader(config_file))
        assert store.users_file == override

    def test_create_missing_option(self, tmp_path):
        path = tmp_path / "fresh.properties"
        config = write_config(
            tmp_path / "config.yaml",
            f"""
            auth_sources:
              - type: properties_file
                options:
                  users_property_file: {path}
                  create_missing: true
            """,
        )
        store = CredentialStore.from_config(ConfigLoader(config))
        assert store.list_user_names() == set()

    def test_singleton(self, config_file, users_file):
        store = get_credential_store()
        assert store is get_credential_store()
        assert store.users_file == users_file
