"""
ER Triage - Configuration Management

Centralized configuration using Pydantic Settings.
Environment-specific values (file locations, log level, simulation
parameters) are loaded from environment variables or a .env file.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Hierarchy (highest to lowest priority):
    1. Environment variables
    2. .env file
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_log_level: str = "INFO"
    log_json_format: bool = False
    anonymize_logs: bool = True  # Reduce patient names to initials in app logs

    # --- Patient File ---
    enable_persistence: bool = True
    patient_file: str = "patients.txt"

    # --- Audit Log ---
    enable_audit_log: bool = True
    audit_log_file: str = "treated_log.txt"

    # --- Auto Simulation ---
    simulation_steps: int = Field(default=20, ge=1)
    simulation_delay_ms: int = Field(default=800, ge=0)
    simulation_seed: Optional[int] = None  # None = fresh entropy each run

    @field_validator("app_log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
