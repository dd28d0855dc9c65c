"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from unscroll.config import CONFIG_ENV_VAR, Settings, validate_credentials

ENV_VARS = [
    "TMDB_API_KEY",
    "TMDB_API_TOKEN",
    "OPENAI_API_KEY",
    "DEMO_USER_EMAIL",
    "DEMO_USER_PASSWORD",
    CONFIG_ENV_VAR,
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def write_config(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_defaults_without_config_file(tmp_path):
    settings = Settings(tmp_path / "missing.yaml")

    assert settings.port == 8080
    assert settings.store_backend == "json"
    assert settings.store_path == Path("data/unscroll.json")
    assert settings.tmdb_api_key is None
    assert settings.openai_model == "gpt-4o-mini"
    assert settings.cli_user_id == "local"


def test_loads_yaml(tmp_path):
    path = write_config(
        tmp_path / "config.yaml",
        {
            "server": {"port": 9000, "log_level": "debug", "cors_origins": ["http://localhost:3000"]},
            "store": {"backend": "memory"},
            "tmdb": {"api_key": "tmdb-key", "region": "GB"},
            "openai": {"api_key": "sk-test", "model": "gpt-4o"},
            "auth": {"session_ttl_hours": 2, "demo_email": "demo@example.com", "demo_password": "demo-pass"},
        },
    )

    settings = Settings(path)

    assert settings.port == 9000
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ["http://localhost:3000"]
    assert settings.store_backend == "memory"
    assert settings.tmdb_api_key == "tmdb-key"
    assert settings.tmdb_region == "GB"
    assert settings.openai_api_key == "sk-test"
    assert settings.openai_model == "gpt-4o"
    assert settings.session_ttl_hours == 2
    assert settings.demo_email == "demo@example.com"
    assert validate_credentials(settings) == (True, [])


def test_placeholders_fall_back_to_environment(tmp_path, monkeypatch):
    path = write_config(
        tmp_path / "config.yaml",
        {"tmdb": {"api_key": "YOUR_TMDB_API_KEY_HERE"}, "openai": {"api_key": "YOUR_OPENAI_API_KEY_HERE"}},
    )
    monkeypatch.setenv("TMDB_API_KEY", "env-tmdb-key")
    monkeypatch.setenv("DEMO_USER_EMAIL", "demo@example.com")

    settings = Settings(path)

    assert settings.tmdb_api_key == "env-tmdb-key"
    assert settings.openai_api_key is None
    assert settings.demo_email == "demo@example.com"
    assert validate_credentials(settings) == (False, ["openai.api_key"])


def test_missing_credentials_reported(tmp_path):
    is_valid, missing = validate_credentials(Settings(tmp_path / "missing.yaml"))
    assert not is_valid
    assert missing == ["tmdb.api_key / tmdb.api_token", "openai.api_key"]


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = write_config(tmp_path / "custom.yaml", {"server": {"port": 1234}})
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    settings = Settings()

    assert settings.config_path == path
    assert settings.port == 1234


def test_template_copied_on_first_run(tmp_path):
    (tmp_path / "config.example.yaml").write_text("server:\n  port: 8181\n", encoding="utf-8")

    settings = Settings(tmp_path / "data" / "config.yaml")

    assert (tmp_path / "data" / "config.yaml").exists()
    assert settings.port == 8181


def test_invalid_backend_rejected(tmp_path):
    path = write_config(tmp_path / "config.yaml", {"store": {"backend": "redis"}})
    with pytest.raises(ValidationError):
        Settings(path)
