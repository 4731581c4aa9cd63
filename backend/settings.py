"""Runtime configuration for the ComputeVis server."""

import os
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field

from computevis.annotation import FLASH_MODEL, PRO_MODEL
from computevis.models import SimulationConfig

PROJECT_ROOT = Path(__file__).parent.parent

API_KEY_VARS = ["GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY"]


class KeySource(str, Enum):
    """Where the API key was found."""

    NONE = "none"
    ENV_VAR = "env_var"
    ENV_FILE = "env_file"


class KeyInfo(BaseModel):
    """Masked description of the API key."""

    available: bool = False
    source: KeySource = KeySource.NONE
    source_path: Optional[str] = None
    masked_key: Optional[str] = None


def get_api_key() -> tuple[Optional[str], KeySource, Optional[str]]:
    """
    Get the Gemini API key from available sources.

    Returns:
        Tuple of (key, source, source_path)

    Priority:
    1. Environment variables GEMINI_API_KEY, GOOGLE_API_KEY, API_KEY
    2. .env file in the project root or the current directory
    """
    for env_var in API_KEY_VARS:
        key = os.environ.get(env_var)
        if key:
            return key, KeySource.ENV_VAR, env_var

    for env_path in (PROJECT_ROOT / ".env", Path.cwd() / ".env"):
        if env_path.exists():
            env_values = dotenv_values(env_path)
            for name in API_KEY_VARS:
                if env_values.get(name):
                    return env_values[name], KeySource.ENV_FILE, str(env_path)

    return None, KeySource.NONE, None


def mask_key(key: str) -> str:
    """Show only the first and last four characters."""
    if len(key) > 10:
        return f"{key[:4]}...{key[-4:]}"
    return "****"


def get_key_info() -> KeyInfo:
    key, source, source_path = get_api_key()
    if not key:
        return KeyInfo()
    return KeyInfo(
        available=True,
        source=source,
        source_path=source_path,
        masked_key=mask_key(key),
    )


class Settings(BaseModel):
    """Server and simulation settings."""

    host: str = "0.0.0.0"
    port: int = Field(default=8765, ge=1, le=65535)
    log_level: str = "info"
    api_key: Optional[str] = None
    training_model: str = PRO_MODEL
    inference_model: str = FLASH_MODEL
    request_timeout_s: float = Field(default=30.0, gt=0.0)
    annotation_retries: int = Field(default=2, ge=0, le=10)
    annotation_backoff_ms: int = Field(default=1000, ge=0, le=60000)
    metrics_interval_ms: int = Field(default=1000, ge=16, le=60000)
    step_interval_ms: int = Field(default=1500, ge=16, le=60000)
    history_size: int = Field(default=30, ge=1, le=10000)
    step_ceiling: int = Field(default=20, ge=1, le=100000)

    def simulation_config(self) -> SimulationConfig:
        return SimulationConfig(
            metrics_interval_s=self.metrics_interval_ms / 1000,
            step_interval_s=self.step_interval_ms / 1000,
            history_size=self.history_size,
            step_ceiling=self.step_ceiling,
        )


def load_settings() -> Settings:
    """Build settings from COMPUTEVIS_* environment variables."""
    overrides = {}
    for name in Settings.model_fields:
        value = os.environ.get(f"COMPUTEVIS_{name.upper()}")
        if value is not None:
            overrides[name] = value
    if "api_key" not in overrides:
        overrides["api_key"] = get_api_key()[0]
    return Settings(**overrides)
