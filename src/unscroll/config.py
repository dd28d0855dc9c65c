"""Configuration management using Pydantic models."""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .constants import DEFAULT_LOCAL_USER_ID, DEFAULT_SESSION_TTL_HOURS, DEFAULT_WEB_UI_PORT

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "UNSCROLL_CONFIG"

# Placeholder values that indicate unconfigured credentials
INVALID_PLACEHOLDERS = {
    "YOUR_TMDB_API_KEY_HERE",
    "YOUR_TMDB_API_TOKEN_HERE",
    "YOUR_OPENAI_API_KEY_HERE",
    "",
}

STORE_BACKENDS = {"memory", "json", "firestore"}


class ServerConfig(BaseModel):
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = DEFAULT_WEB_UI_PORT
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=list)

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()


class StoreConfig(BaseModel):
    """Document store settings."""
    backend: str = "json"
    path: str = "data/unscroll.json"
    firestore_project_id: Optional[str] = None

    @field_validator("backend")
    @classmethod
    def check_backend(cls, v: str) -> str:
        """Only known backends are accepted."""
        if v not in STORE_BACKENDS:
            raise ValueError(f"store.backend must be one of {sorted(STORE_BACKENDS)}")
        return v


class TMDBConfig(BaseModel):
    """TMDB API configuration."""
    api_key: Optional[str] = None
    api_token: Optional[str] = None
    base_url: str = "https://api.themoviedb.org/3"
    image_base_url: str = "https://image.tmdb.org/t/p/w500"
    language: str = "en-US"
    region: str = "US"


class OpenAIConfig(BaseModel):
    """Text-generation provider configuration."""
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: str = "gpt-4o-mini"
    timeout: float = 30.0


class AuthConfig(BaseModel):
    """Session and demo-account settings."""
    session_ttl_hours: int = Field(default=DEFAULT_SESSION_TTL_HOURS, gt=0)
    demo_email: Optional[str] = None
    demo_password: Optional[str] = None


class CLIConfig(BaseModel):
    """Settings for local CLI commands."""
    user_id: str = DEFAULT_LOCAL_USER_ID


class Config(BaseModel):
    """Root configuration model."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    tmdb: TMDBConfig = Field(default_factory=TMDBConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    cli: CLIConfig = Field(default_factory=CLIConfig)


def _secret(value: Optional[str], env_var: str) -> Optional[str]:
    """Use the configured value unless it is a placeholder, else the environment."""
    if value and value not in INVALID_PLACEHOLDERS:
        return value
    return os.environ.get(env_var) or None


class Settings:
    """Application settings loaded from config.yaml."""

    def __init__(self, config_path: Optional[Path] = None):
        """Load and validate configuration."""
        self.config_path = Path(config_path) if config_path else self._get_config_path()

        if not self.config_path.exists():
            self._create_config_template()

        self._load_config()

    def _get_config_path(self) -> Path:
        """Get config file path based on environment."""
        if os.environ.get(CONFIG_ENV_VAR):
            return Path(os.environ[CONFIG_ENV_VAR])
        if os.path.exists("/.dockerenv"):
            return Path("/app/data/config.yaml")
        return Path("data/config.yaml")

    def _create_config_template(self) -> None:
        """Create config template from example."""
        example_path = Path("config.example.yaml")
        if example_path.exists():
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy(example_path, self.config_path)
            logger.info(f"✅ Created config template: {self.config_path}")
            logger.info("📝 Edit the config file to add your TMDB and OpenAI keys")

    def _load_config(self) -> None:
        """Load configuration from YAML using Pydantic."""
        try:
            raw_config = {}
            if self.config_path.exists():
                with open(self.config_path, "r", encoding="utf-8") as f:
                    raw_config = yaml.safe_load(f) or {}
                logger.info(f"✅ Loaded configuration from {self.config_path}")
            else:
                logger.warning(f"No config file at {self.config_path}, using defaults")

            config = Config(**raw_config)
        except Exception as e:
            logger.error(f"❌ Failed to load config: {e}")
            raise

        self.config = config

        self.host = config.server.host
        self.port = config.server.port
        self.log_level = config.server.log_level
        self.cors_origins = config.server.cors_origins

        self.store_backend = config.store.backend
        self.store_path = Path(config.store.path)
        self.firestore_project_id = config.store.firestore_project_id

        self.tmdb_api_key = _secret(config.tmdb.api_key, "TMDB_API_KEY")
        self.tmdb_api_token = _secret(config.tmdb.api_token, "TMDB_API_TOKEN")
        self.tmdb_base_url = config.tmdb.base_url
        self.tmdb_image_base_url = config.tmdb.image_base_url
        self.tmdb_language = config.tmdb.language
        self.tmdb_region = config.tmdb.region

        self.openai_api_key = _secret(config.openai.api_key, "OPENAI_API_KEY")
        self.openai_base_url = config.openai.base_url
        self.openai_model = config.openai.model
        self.openai_timeout = config.openai.timeout

        self.session_ttl_hours = config.auth.session_ttl_hours
        self.demo_email = config.auth.demo_email or os.environ.get("DEMO_USER_EMAIL")
        self.demo_password = config.auth.demo_password or os.environ.get("DEMO_USER_PASSWORD")

        self.cli_user_id = config.cli.user_id


def validate_credentials(settings: Optional[Settings] = None) -> tuple[bool, list[str]]:
    """
    Check that provider credentials are present and not placeholders.
    Returns (is_valid, list_of_missing_settings).
    """
    settings = settings or get_settings()
    missing = []
    if not (settings.tmdb_api_key or settings.tmdb_api_token):
        missing.append("tmdb.api_key / tmdb.api_token")
    if not settings.openai_api_key:
        missing.append("openai.api_key")
    return len(missing) == 0, missing


# Singleton cache for settings
_SETTINGS_SINGLETON = None


def get_settings() -> Settings:
    """Get (cached) application settings singleton."""
    global _SETTINGS_SINGLETON
    if _SETTINGS_SINGLETON is None:
        _SETTINGS_SINGLETON = Settings()
    return _SETTINGS_SINGLETON


def reload_settings() -> Settings:
    """Force reload of application settings singleton."""
    global _SETTINGS_SINGLETON
    _SETTINGS_SINGLETON = Settings()
    return _SETTINGS_SINGLETON
