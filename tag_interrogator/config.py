"""
Configuration management for the tag interrogator.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from .models import BackendConfig, BackendType


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Backend selection
    backend_type: str = Field(default="local_hybrid", description="gemini or local_hybrid")

    # Gemini Configuration
    gemini_api_key: str = Field(default="")
    gemini_model: str = Field(default="gemini-3-pro-preview")
    gemini_caption_model: str = Field(default="gemini-2.5-flash")

    # Local Hybrid Configuration
    ollama_endpoint: str = Field(default="http://localhost:11434")
    ollama_model: str = Field(default="qwen3-vl:30b")
    tagger_endpoint: str = Field(default="http://localhost:8000/interrogate/pixai")
    enable_natural_language: bool = Field(default=True)

    # Reference vocabulary (path or http(s) URL; empty means the bundled table)
    vocabulary_source: str = Field(default="")

    # No timeout unless explicitly configured
    request_timeout: Optional[float] = Field(default=None, gt=0.0)

    # Logging Configuration
    log_level: str = Field(default="INFO")

    @field_validator("backend_type")
    @classmethod
    def validate_backend_type(cls, v):
        """Ensure the backend type is supported."""
        supported = [backend.value for backend in BackendType]
        if v.lower() not in supported:
            raise ValueError(f"BACKEND_TYPE must be one of: {supported}")
        return v.lower()

    @field_validator("ollama_endpoint", "tagger_endpoint")
    @classmethod
    def validate_endpoint(cls, v):
        """Blank is allowed here; anything else must be an http(s) URL."""
        v = v.strip()
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Endpoints must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure the log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {valid_levels}")
        return v.upper()

    def to_backend_config(self, **overrides) -> BackendConfig:
        """Build a BackendConfig from these settings, with optional overrides."""
        values = {
            "type": BackendType(self.backend_type),
            "gemini_api_key": self.gemini_api_key,
            "gemini_model": self.gemini_model,
            "gemini_caption_model": self.gemini_caption_model,
            "ollama_endpoint": self.ollama_endpoint,
            "ollama_model": self.ollama_model,
            "tagger_endpoint": self.tagger_endpoint,
            "enable_natural_language": self.enable_natural_language,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return BackendConfig(**values)


# Global settings instance
settings = Settings()
