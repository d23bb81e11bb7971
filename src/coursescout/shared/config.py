"""
Configuration Module - Load and validate application settings.
==============================================================

Loads configuration from:
1. config/settings.yaml (defaults)
2. Environment variables from .env file
3. Environment variables from system

Environment variables override YAML defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early
load_dotenv()


def _find_project_root() -> Path:
    """Find the project root directory by looking for pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path.cwd()


PROJECT_ROOT = _find_project_root()
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.yaml"


# ─────────────────────────────────────────────────────────────────────────────
# Nested Configuration Models
# ─────────────────────────────────────────────────────────────────────────────


class CanvasConfig(BaseModel):
    """Canvas instance settings (usually supplied through the environment)."""

    base_url: str = ""
    api_token: str = ""


class HttpConfig(BaseModel):
    """HTTP client settings shared by the API and web paths."""

    timeout: float = 30.0
    probe_timeout: float = 10.0
    max_retries: int = 3
    retry_min_wait: float = 1.0
    retry_max_wait: float = 10.0
    user_agent: str = "CourseScout/0.1.0"


class PaginationConfig(BaseModel):
    """Pagination aggregation limits."""

    per_page: int = 100
    max_pages: int = 50


class DiscoveryConfig(BaseModel):
    """Content discovery settings."""

    cache_ttl_seconds: int = 3600
    max_web_pages: int = 40
    max_concurrency: int = 5
    max_body_chars: int = 20000
    common_page_slugs: list[str] = Field(
        default_factory=lambda: [
            "syllabus",
            "course-materials",
            "course-resources",
            "resources",
            "lecture-notes",
            "lecture-slides",
            "readings-class-notes-and-videos",
            "schedule",
            "course-schedule",
            "handouts",
        ]
    )


class SearchConfig(BaseModel):
    """Fuzzy matching and smart search settings."""

    match_threshold: float = 0.5
    max_results: int = 5


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    rich_console: bool = True
    file: str = ""


# ─────────────────────────────────────────────────────────────────────────────
# Main Settings Class
# ─────────────────────────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """
    Main application settings.

    Loads from:
    1. config/settings.yaml (defaults)
    2. Environment variables

    Environment variables override YAML settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Credentials (from environment only)
    canvas_base_url: str = Field(default="", validation_alias="CANVAS_BASE_URL")
    canvas_api_token: str = Field(default="", validation_alias="CANVAS_API_TOKEN")

    # Top-level environment overrides
    cache_ttl_seconds: Optional[int] = Field(default=None, validation_alias="CACHE_TTL_SECONDS")
    log_level: Optional[str] = Field(default=None, validation_alias="LOG_LEVEL")

    # Nested configurations (from YAML)
    canvas: CanvasConfig = Field(default_factory=CanvasConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("canvas_base_url", "canvas_api_token", mode="before")
    @classmethod
    def validate_credentials(cls, v: Any) -> str:
        """Allow empty credentials; tools fail with a clear error when used."""
        if v is None:
            return ""
        return str(v).strip()

    def get_effective_base_url(self) -> str:
        """Get the Canvas base URL (env override or config)."""
        return self.canvas_base_url or self.canvas.base_url

    def get_effective_token(self) -> str:
        """Get the Canvas API token (env override or config)."""
        return self.canvas_api_token or self.canvas.api_token

    def get_effective_cache_ttl(self) -> int:
        """Get the effective discovery cache TTL in seconds."""
        if self.cache_ttl_seconds is not None:
            return self.cache_ttl_seconds
        return self.discovery.cache_ttl_seconds

    def get_effective_log_level(self) -> str:
        """Get the effective log level (env override or config)."""
        if self.log_level:
            return self.log_level.upper()
        return self.logging.level.upper()


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        return data if data else {}


def _create_settings(config_path: Optional[Path] = None) -> Settings:
    """Create settings instance by merging YAML defaults with environment."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    yaml_config = _load_yaml_config(config_path)

    return Settings(**yaml_config)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the singleton settings instance.

    Returns:
        Settings instance with merged configuration

    Example:
        >>> settings = get_settings()
        >>> print(settings.pagination.per_page)
        100
    """
    return _create_settings()


def reload_settings() -> Settings:
    """
    Force reload of settings (clears cache).

    Returns:
        Fresh Settings instance
    """
    get_settings.cache_clear()
    return get_settings()
