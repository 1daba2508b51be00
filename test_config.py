"""
Tests for configuration models and the layered ConfigLoader
"""

import pytest
from pydantic import ValidationError

from lineflux.config import DEFAULT_HOST, ClientConfig, WriteParams
from lineflux.config_loader import ConfigLoader
from lineflux.point import Precision


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "LINEFLUX_HOST", "LINEFLUX_TOKEN", "LINEFLUX_DATABASE", "LINEFLUX_PRECISION",
        "LINEFLUX_DEFAULT_TAGS", "LINEFLUX_WRITE_BATCH_SIZE", "LINEFLUX_CONFIG_FILE", "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_client_config_defaults():
    config = ClientConfig()
    assert config.host == DEFAULT_HOST
    assert config.write_options.precision is Precision.NANOSECOND
    assert config.write_params.batch_size == 5000
    assert config.batching.size == 1000


@pytest.mark.parametrize("host", ["", "ftp://example.com", "localhost:8181"])
def test_invalid_host(host):
    with pytest.raises(ValidationError):
        ClientConfig(host=host)


def test_precision_aliases():
    assert WriteParams(precision="second").precision is Precision.SECOND
    assert WriteParams(precision="ms").precision is Precision.MILLISECOND
    with pytest.raises(ValidationError):
        WriteParams(precision="minutes")


def test_write_params_ranges():
    with pytest.raises(ValidationError):
        WriteParams(batch_size=0)
    with pytest.raises(ValidationError):
        WriteParams(flush_interval_seconds=0)


def test_from_env(monkeypatch):
    monkeypatch.setenv("LINEFLUX_HOST", "https://db.example.com")
    monkeypatch.setenv("LINEFLUX_DATABASE", "telemetry")
    monkeypatch.setenv("LINEFLUX_PRECISION", "us")
    monkeypatch.setenv("LINEFLUX_WRITE_BATCH_SIZE", "250")

    config = ClientConfig.from_env()
    assert config.host == "https://db.example.com"
    assert config.database == "telemetry"
    assert config.write_options.precision is Precision.MICROSECOND
    assert config.write_params.precision is Precision.MICROSECOND
    assert config.write_params.batch_size == 250


def test_loader_defaults(tmp_path):
    loader = ConfigLoader(str(tmp_path / "missing.toml"))
    assert loader.get("client", "host") == DEFAULT_HOST
    assert loader.get("writer", "nope", default=7) == 7

    config = loader.build()
    assert config.write_params.flush_interval_seconds == 60.0


def test_loader_file_then_env(tmp_path, monkeypatch):
    config_file = tmp_path / "lineflux.toml"
    config_file.write_text(
        '[client]\n'
        'host = "https://file.example.com"\n'
        'database = "from_file"\n'
        'token = "secret"\n'
        '\n'
        '[write]\n'
        'precision = "ms"\n'
        '\n'
        '[write.default_tags]\n'
        'region = "eu"\n'
        '\n'
        '[writer]\n'
        'batch_size = 100\n'
    )
    monkeypatch.setenv("LINEFLUX_DATABASE", "from_env")
    monkeypatch.setenv("LINEFLUX_DEFAULT_TAGS", "rack=r1, dc=fra")

    loader = ConfigLoader(str(config_file))
    config = loader.build()

    assert config.host == "https://file.example.com"
    assert config.database == "from_env"
    assert config.write_options.precision is Precision.MILLISECOND
    assert config.write_options.default_tags == {"rack": "r1", "dc": "fra"}
    assert config.write_params.precision is Precision.MILLISECOND
    assert config.write_params.batch_size == 100
    assert loader.dump()["client"]["token"] == "***"
    assert loader.config["client"]["token"] == "secret"


def test_loader_config_file_from_env(tmp_path, monkeypatch):
    config_file = tmp_path / "custom.toml"
    config_file.write_text('[batching]\nsize = 42\n')
    monkeypatch.setenv("LINEFLUX_CONFIG_FILE", str(config_file))

    assert ConfigLoader().build().batching.size == 42


def test_loader_ignores_broken_file(tmp_path):
    config_file = tmp_path / "lineflux.toml"
    config_file.write_text("[client\nhost = ")

    loader = ConfigLoader(str(config_file))
    assert loader.get("client", "host") == DEFAULT_HOST


def test_loader_skips_unconvertible_env(tmp_path, monkeypatch):
    monkeypatch.setenv("LINEFLUX_WRITE_BATCH_SIZE", "lots")
    loader = ConfigLoader(str(tmp_path / "missing.toml"))
    assert loader.get("writer", "batch_size") == 5000


def test_logging_config(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_FORMAT", "text")
    loader = ConfigLoader(str(tmp_path / "missing.toml"))
    assert loader.get_logging_config() == {"level": "DEBUG", "structured": False, "include_trace": False}
