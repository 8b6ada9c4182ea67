"""Configuration management for Exam Solver."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from examsolver.common.errors import ConfigurationError
from examsolver.prompts import SYSTEM_PROMPT


class DeviceConfig(BaseModel):
    """Device configuration."""

    name: str = "examsolver"
    mode: Literal["production", "development"] = "development"
    log_level: str = "INFO"


class GlassesConfig(BaseModel):
    """Glasses bridge configuration (camera + display)."""

    endpoint: str = "http://localhost:8765"
    capture_quality: int = 90
    target_width: int = 2400
    target_height: int = 1800
    timeout_seconds: float = 10.0


class LLMConfig(BaseModel):
    """Chat-completion service configuration (OpenAI-compatible)."""

    base_url: str = "https://api.poe.com/v1"
    api_key: str | None = None
    model: str = "GPT-5.2"
    timeout_seconds: float = 60.0


class TimingConfig(BaseModel):
    """Round timing, in seconds."""

    initial_delay: float = 10.0
    capture_interval: float = 15.0
    invalid_retry_delay: float = 5.0
    stream_min_interval: float = 0.35


class HistoryConfig(BaseModel):
    """Conversation memory configuration."""

    max_rounds: int = Field(default=5, ge=0)
    system_prompt: str = SYSTEM_PROMPT


class Config(BaseSettings):
    """Main configuration for Exam Solver."""

    model_config = SettingsConfigDict(
        env_prefix="EXAMSOLVER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    device: DeviceConfig = Field(default_factory=DeviceConfig)
    glasses: GlassesConfig = Field(default_factory=GlassesConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)

    # Mock mode for development
    mock_mode: bool = False

    @classmethod
    def from_yaml(cls, path: Path | str) -> Config:
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)


def load_config(
    config_path: Path | str | None = None,
    env_override: bool = True,
) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Path to config file. If None, searches standard locations.
        env_override: Whether to allow environment variables to override config.

    Returns:
        Loaded configuration.
    """
    # Standard config locations
    search_paths = [
        Path("/etc/examsolver/config.yaml"),
        Path.home() / ".config" / "examsolver" / "config.yaml",
        Path("config.yaml"),
        Path("configs/examsolver.yaml"),
    ]

    if config_path:
        search_paths.insert(0, Path(config_path))

    # Find first existing config file
    config_file: Path | None = None
    for path in search_paths:
        if path.exists():
            config_file = path
            break

    if config_file:
        config = Config.from_yaml(config_file)
    else:
        config = Config()

    if env_override:
        api_key = os.environ.get("EXAMSOLVER_LLM_API_KEY")
        if api_key:
            config.llm.api_key = api_key

        if os.environ.get("EXAMSOLVER_MOCK_MODE", "").lower() in ("1", "true", "yes"):
            config.mock_mode = True

    return config


def require_llm_settings(config: Config) -> None:
    """Fail fast when the chat service cannot be reached with these settings.

    Mock mode talks to no service and skips the check.

    Raises:
        ConfigurationError: Listing every missing setting.
    """
    if config.mock_mode:
        return

    missing = []
    if not config.llm.base_url.strip():
        missing.append("API base URL (llm.base_url)")
    if not (config.llm.api_key or "").strip():
        missing.append("API key (llm.api_key)")
    if not config.llm.model.strip():
        missing.append("model (llm.model)")

    if missing:
        raise ConfigurationError(
            f"Not configured: {', '.join(missing)}. Fill in the settings and retry."
        )


def get_default_config() -> dict[str, Any]:
    """Get default configuration as dictionary."""
    return Config().model_dump()
