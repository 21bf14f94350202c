"""
Configuration management using Pydantic Settings.

Loads configuration from environment variables and .env file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings for the consensus pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Retry policy
    worker_max_attempts: int = Field(default=3, ge=1)
    judge_max_attempts: int = Field(default=3, ge=1)
    enrichment_max_attempts: int = Field(default=2, ge=1)
    retry_base_delay_s: float = Field(default=0.1, ge=0.0)

    # Sampling
    worker_temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    judge_temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=2048, ge=1)
    request_timeout_s: float = Field(default=120.0, gt=0)

    # Analytics and prompt presets
    agreement_strategy: Literal["positional", "label_set"] = Field(default="positional")
    worker_prompt_preset: Literal["default", "rigorous"] = Field(default="default")
    judge_prompt_preset: Literal["default", "enhanced"] = Field(default="default")

    # Batch runs
    batch_max_concurrency: int = Field(default=5, ge=1)

    # Storage
    database_path: Path = Field(default=Path("./data/consensus_runs.db"))

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    # Config file paths
    config_dir: Path = Field(
        default=Path(__file__).parent,
        description="Directory containing config files",
    )

    @property
    def prompts_yaml_path(self) -> Path:
        """Path to prompts.yaml configuration file."""
        return self.config_dir / "prompts.yaml"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience function for accessing settings
settings = get_settings()
