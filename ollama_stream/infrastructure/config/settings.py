"""
Configuration settings - Infrastructure component for managing application configuration.
Uses pydantic-settings for validation and environment variable loading.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    case_sensitive=False,
    extra="ignore",
    populate_by_name=True,
)

DEFAULT_STATUS_CODES = [500, 502, 503, 504, 429, 408]


class OllamaSettings(BaseSettings):
    """Ollama service configuration."""

    model_config = _ENV_CONFIG

    host: str = Field("http://localhost:11434", validation_alias="OLLAMA_HOST")
    chat_path: str = Field("/api/chat", validation_alias="OLLAMA_CHAT_PATH")
    model: str = Field("qwen3:30b", validation_alias="OLLAMA_MODEL")

    # Timeout settings
    connect_timeout_s: float = Field(5.0, validation_alias="OLLAMA_CONNECT_TIMEOUT_S")
    read_timeout_s: float = Field(600.0, validation_alias="OLLAMA_READ_TIMEOUT_S")

    @field_validator("host")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def chat_url(self) -> str:
        path = self.chat_path if self.chat_path.startswith("/") else f"/{self.chat_path}"
        return f"{self.host}{path}"


class RetrySettings(BaseSettings):
    """Retry and resilience configuration."""

    model_config = _ENV_CONFIG

    max_retries: int = Field(3, validation_alias="CLI_MAX_RETRIES")
    backoff_base: float = Field(1.0, validation_alias="CLI_RETRY_BACKOFF_BASE")
    max_delay: float = Field(30.0, validation_alias="CLI_RETRY_MAX_DELAY")
    jitter_max: float = Field(0.1, validation_alias="CLI_RETRY_JITTER_MAX")

    # Comma-separated retryable HTTP status codes
    retryable_status_codes: str = Field(
        "500,502,503,504,429,408",
        validation_alias="CLI_RETRYABLE_STATUS_CODES"
    )

    @field_validator("max_retries")
    @classmethod
    def non_negative(cls, v: int) -> int:
        return max(0, v)

    @property
    def status_codes(self) -> List[int]:
        """Parse comma-separated status codes into list."""
        try:
            return [int(code.strip()) for code in self.retryable_status_codes.split(",") if code.strip()]
        except ValueError:
            return list(DEFAULT_STATUS_CODES)


class ChatSettings(BaseSettings):
    """Chat loop configuration."""

    model_config = _ENV_CONFIG

    max_tool_iterations: int = Field(10, validation_alias="CHAT_MAX_TOOL_ITERATIONS")
    turn_retries: int = Field(0, validation_alias="CHAT_TURN_RETRIES")
    system_prompt: Optional[str] = Field(None, validation_alias="CHAT_SYSTEM_PROMPT")
    spinner_interval_ms: int = Field(80, validation_alias="CHAT_SPINNER_INTERVAL_MS")
    tools_enabled: bool = Field(True, validation_alias="TOOLS_ENABLED")

    @field_validator("max_tool_iterations")
    @classmethod
    def validate_max_tool_iterations(cls, v: int) -> int:
        """At least one round trip per turn."""
        return max(1, v)

    @field_validator("turn_retries")
    @classmethod
    def validate_turn_retries(cls, v: int) -> int:
        return max(0, v)

    @property
    def spinner_interval(self) -> float:
        return max(self.spinner_interval_ms, 1) / 1000.0


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = _ENV_CONFIG

    # Sub-configurations
    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    chat: ChatSettings = Field(default_factory=ChatSettings)

    # CLI settings
    quiet: bool = Field(False, validation_alias="CLI_QUIET")

    # Logging
    log_level: str = Field("WARNING", validation_alias="LOG_LEVEL")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        validation_alias="LOG_FORMAT"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            return "WARNING"
        return v.upper()

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        return {
            "ollama": self.ollama.model_dump(),
            "retry": self.retry.model_dump(),
            "chat": self.chat.model_dump(),
            "quiet": self.quiet,
            "log_level": self.log_level,
        }

    @property
    def tools_enabled(self) -> bool:
        """Check if tool system is enabled."""
        return self.chat.tools_enabled


# Global settings instance
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reload_settings() -> AppSettings:
    """Reload settings from environment (for testing)."""
    global _settings
    _settings = AppSettings()
    return _settings
