"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _check_url(v: str) -> str:
    from ..utils.security import validate_service_url

    if not validate_service_url(v):
        raise ValueError(f"Invalid service URL: {v}. Expected http(s)://host/...")
    return v


class SandboxConfig(BaseModel):
    """Remote execution service (Piston) configuration."""

    enabled: bool = True
    url: str = "https://emkc.org/api/v2/piston/execute"
    language: str = "java"
    version: str = "15.0.2"
    file_name: str = "Main.java"
    timeout: float = Field(5.0, gt=0.0, le=60.0, description="Wall-clock limit in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate the execution endpoint."""
        return _check_url(v)


class GroqConfig(BaseModel):
    """Groq (OpenAI-compatible chat completions) configuration."""

    api_key: str
    base_url: str = "https://api.groq.com/openai/v1/chat/completions"
    model: str = "llama-3.3-70b-versatile"
    max_tokens: int = 8192
    temperature: float = Field(0.1, ge=0.0, le=2.0)
    timeout: float = Field(30.0, gt=0.0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate the gateway endpoint."""
        return _check_url(v)


class AnthropicConfig(BaseModel):
    """Anthropic-specific configuration."""

    api_key: str
    model: str = "claude-3-5-sonnet-20241022"
    max_tokens: int = 4096
    temperature: float = 0.1
    timeout: float = Field(30.0, gt=0.0)


class LLMConfig(BaseModel):
    """Model gateway configuration."""

    provider: Literal["groq", "anthropic", "none"] = "none"
    groq: GroqConfig | None = None
    anthropic: AnthropicConfig | None = None
    simulation_cache_ttl: int = Field(300, ge=0, description="0 disables the cache")
    simulation_cache_size: int = Field(64, ge=1)


class StorageConfig(BaseModel):
    """Persistence for run history and mistake counts."""

    path: Path = Path("~/.ai-code-tutor/state.json")
    history_limit: int = Field(20, ge=1, le=500)

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: Path) -> Path:
        """Expand ``~`` in the state file path."""
        return v.expanduser()


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("~/.ai-code-tutor/tutor.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "console"
    file: FileLoggingConfig = FileLoggingConfig()


class RetryConfig(BaseModel):
    """Retry configuration for transient model gateway failures."""

    max_attempts: int = Field(2, ge=1, le=10)
    initial_delay: float = Field(0.5, ge=0.1, le=10.0)
    max_delay: float = Field(5.0, ge=1.0, le=60.0)


class TutorConfig(BaseSettings):
    """Root configuration for the tutor engine."""

    sandbox: SandboxConfig = SandboxConfig()
    llm: LLMConfig = LLMConfig()
    storage: StorageConfig = StorageConfig()
    logging: LoggingConfig = LoggingConfig()
    retry: RetryConfig = RetryConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )
