"""Tests for configuration loading and validation."""

import json

import pytest

from core.request import DEFAULT_SERVER_ADDRESS
from core.validators import (
    CONFIG_ENV_VARIABLE,
    AdapterConfig,
    ConfigurationError,
    load_and_validate_config,
    load_config,
    resolve_host,
    validate_config,
)


def test_validate_minimal_config():
    """Test that only the app import string is required."""
    config = validate_config({"app": "myapp.wsgi:application"})
    assert config.app == "myapp.wsgi:application"
    assert config.host is None
    assert config.strip_base_path == ""
    assert config.logging.level == "INFO"
    assert config.logging.pretty is False


def test_validate_full_config():
    config = validate_config(
        {
            "app": "myapp:app",
            "host": "https://api.example.com/",
            "strip_base_path": "/v1",
            "logging": {"level": "debug", "pretty": True},
        }
    )
    assert config.host == "https://api.example.com"
    assert config.strip_base_path == "/v1"
    assert config.logging.level == "DEBUG"


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"app": "no_attribute"},
        {"app": "myapp:app", "host": "api.example.com"},
        {"app": "myapp:app", "host": "ftp://api.example.com"},
        {"app": "myapp:app", "logging": {"level": "LOUD"}},
        {"app": "myapp:app", "unknown": True},
    ],
)
def test_invalid_config_raises(config):
    with pytest.raises(ConfigurationError):
        validate_config(config)


def test_non_dict_config_raises():
    with pytest.raises(ConfigurationError, match="must be a dictionary"):
        validate_config(["app"])


def test_load_yaml_config(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text('app: "myapp:app"\nstrip_base_path: api\n')

    config = load_and_validate_config(str(config_file))

    assert config.app == "myapp:app"
    assert config.strip_base_path == "api"


def test_load_missing_yaml_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_and_validate_config(str(tmp_path / "missing.yaml"))


def test_load_empty_yaml_raises(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")
    with pytest.raises(ConfigurationError, match="empty"):
        load_and_validate_config(str(config_file))


def test_load_invalid_yaml_raises(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("app: [unclosed\n")
    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_and_validate_config(str(config_file))


def test_load_config_prefers_environment(tmp_path):
    """Test that the environment variable wins over the YAML file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text('app: "from_file:app"\n')
    environ = {CONFIG_ENV_VARIABLE: json.dumps({"app": "from_env:app"})}

    config = load_config(str(config_file), environ=environ)

    assert config.app == "from_env:app"


def test_load_config_falls_back_to_file(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text('app: "from_file:app"\n')

    config = load_config(str(config_file), environ={})

    assert config.app == "from_file:app"


def test_load_config_invalid_json_raises():
    with pytest.raises(ConfigurationError):
        load_config("unused.yaml", environ={CONFIG_ENV_VARIABLE: "{not json"})


class TestResolveHost:
    """Test resolution of the host used for generated requests."""

    def test_configured_host_wins(self):
        config = AdapterConfig(app="myapp:app", host="https://configured.example.com")
        environ = {"GO_API_HOST": "https://env.example.com"}
        assert resolve_host(config, environ) == "https://configured.example.com"

    def test_environment_override(self):
        config = AdapterConfig(app="myapp:app")
        environ = {"GO_API_HOST": "http://my-custom.host.com"}
        assert resolve_host(config, environ) == "http://my-custom.host.com"

    def test_default_host(self):
        config = AdapterConfig(app="myapp:app")
        assert resolve_host(config, {}) == DEFAULT_SERVER_ADDRESS

    def test_environment_override_without_scheme_raises(self):
        config = AdapterConfig(app="myapp:app")
        with pytest.raises(ConfigurationError, match="GO_API_HOST"):
            resolve_host(config, {"GO_API_HOST": "my-custom.host.com"})
