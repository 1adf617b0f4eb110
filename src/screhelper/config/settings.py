"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Provider credentials (optional; a missing key disables the provider)
    gemini_api_key: Optional[str] = Field(None, description="Google AI Studio key for Gemini models")
    deepseek_api_key: Optional[str] = Field(None, description="DeepSeek platform API key")

    # Provider endpoints
    gemini_base_url: str = Field("https://generativelanguage.googleapis.com/v1beta")
    deepseek_base_url: str = Field("https://api.deepseek.com/v1")
    ollama_base_url: str = Field(
        "http://127.0.0.1:8566",
        description="Base URL of the local Ollama chat service",
    )

    # Per-call deadlines (seconds)
    hosted_timeout: float = Field(60.0, gt=0, description="Deadline for hosted providers")
    local_timeout: float = Field(120.0, gt=0, description="Deadline for local/offline providers")
    model_list_timeout: float = Field(10.0, gt=0)

    # Screening defaults
    screening_concurrency: int = Field(2, ge=1, le=16, description="Simultaneous backend calls per wave")
    default_provider: str = Field("gemini", pattern="^(gemini|deepseek|ollama)$")

    # Directories
    output_dir: Path = Field(Path("output"))
    cache_dir: Path = Field(Path(".cache"))
    session_file: Optional[Path] = Field(
        None,
        description="Where the CLI keeps criteria/provider/model between runs (default: <cache_dir>/session.json)",
    )

    # Logging
    log_level: str = Field("INFO")
    log_format: str = Field("json", pattern="^(json|text)$")

    @field_validator("output_dir", "cache_dir")
    @classmethod
    def _create_dirs(cls, v: Path) -> Path:
        v.mkdir(parents=True, exist_ok=True)
        return v

    def resolved_session_file(self) -> Path:
        return self.session_file or self.cache_dir / "session.json"


# Instantiate global settings
settings = Settings()
