from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal, Mapping

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ObservabilitySettings(BaseModel):
    prometheus_enabled: bool = Field(True)
    json_logs: bool = Field(True, description="Render log lines as JSON instead of the console format.")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class OrchestrationSettings(BaseModel):
    metrics_window: int = Field(100, ge=1, description="Number of recent executions kept per agent/component.")
    max_selected_images: int = Field(5, ge=1, description="Upper bound on images forwarded to the generation backend.")
    recent_message_window: int = Field(5, ge=1, description="How many trailing messages count as 'recent'.")
    recent_image_limit: int = Field(3, ge=1, description="Maximum images picked from recent history.")
    analysis_history_limit: int = Field(5, ge=0, description="Prior image analyses carried into the request context.")
    recent_image_scan_window: int = Field(
        10,
        ge=1,
        description="Trailing messages scanned when flagging a conversation as having recent images.",
    )
    fallback_prompt_max_chars: int = Field(100, ge=1)
    default_language: str = Field("en", min_length=2)
    default_fallback_prompt: str = Field("Create a landscape design", min_length=1)
    consultation_redirect_message: str = Field(
        "I understand you want to generate images, but I'm having trouble with the image generation "
        "service right now. Could you describe what you'd like to create, and I can provide detailed "
        "guidance on how to achieve it?",
        min_length=1,
    )


class GenerationBackendSettings(BaseModel):
    backend_id: str = Field("gemini", min_length=1, description="Identifier used as the default plan target.")
    base_url: str = Field("http://localhost:8080", description="Base URL of the image generation proxy.")
    endpoint_path: str = Field("/v1/images/generate", description="Relative path of the generation endpoint.")
    api_key: str | None = Field(default=None, description="Optional bearer token for the generation proxy.")
    timeout_seconds: float = Field(90.0, ge=0.1)
    verify_ssl: bool = Field(True)


class TextBackendSettings(BaseModel):
    host: str = Field("http://localhost", description="Base URL where Ollama is running.")
    port: int = Field(11434, ge=1, le=65535)
    model: str = Field("llava", min_length=1, description="Vision-capable chat model used by specialist agents.")
    temperature: float = Field(0.4, ge=0.0, le=2.0)
    timeout_seconds: float = Field(60.0, ge=0.1)
    default_confidence: float = Field(0.8, ge=0.0, le=1.0)


class Settings(BaseSettings):
    environment: Literal["local", "test", "production"] = Field("local")
    api_v1_prefix: str = Field("/api/v1")

    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)  # type: ignore[arg-type]
    orchestration: OrchestrationSettings = Field(default_factory=OrchestrationSettings)  # type: ignore[arg-type]
    generation: GenerationBackendSettings = Field(default_factory=GenerationBackendSettings)  # type: ignore[arg-type]
    text: TextBackendSettings = Field(default_factory=TextBackendSettings)  # type: ignore[arg-type]

    enabled_specialists: list[str] = Field(
        default_factory=lambda: ["gardener", "landscape_designer", "builder", "ecologist"],
        description="Specialist profile ids registered at startup.",
    )
    frontend_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Origins permitted to access the API via CORS.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )


@lru_cache(maxsize=1)
def _get_cached_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_settings(overrides: Mapping[str, Any] | None = None) -> Settings:
    """Return settings, using cached defaults unless overrides are provided."""
    if overrides:
        return Settings(**dict(overrides))
    return _get_cached_settings()
