"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables or .env file.
"""

import json
from pathlib import Path
from typing import Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).parent.parent.parent


class DatabaseSettings(BaseSettings):
    """Message store connection settings."""

    db_type: str = "sqlite"  # sqlite, postgresql, mysql, etc.
    host: str = "localhost"
    port: int = 5432
    name: str = "portfolio.db"
    user: str = ""
    password: str = ""
    driver: str = ""  # Optional SQLAlchemy driver (e.g., 'psycopg2', 'pymysql')
    echo: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DB_",
        case_sensitive=False,
        extra="ignore"
    )


def get_db_settings() -> DatabaseSettings:
    """Get database settings instance."""
    return DatabaseSettings()


class LLMSettings(BaseSettings):
    """LLM configuration settings."""

    api_key: str = ""
    model: str = "gpt-4.1-mini"
    temperature: float = 0.1
    max_tokens: int = 2000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LLM_",
        case_sensitive=False,
        extra="ignore"
    )


def get_llm_settings() -> LLMSettings:
    """Get LLM configuration settings instance."""
    return LLMSettings()


class CheckpointSettings(BaseSettings):
    """Checkpoint store settings for the portfolio graph."""

    backend: str = "memory"  # memory or sqlite
    path: str = "checkpoints.sqlite"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CHECKPOINT_",
        case_sensitive=False,
        extra="ignore"
    )


def get_checkpoint_settings() -> CheckpointSettings:
    """Get checkpoint store settings instance."""
    return CheckpointSettings()


class LoggingSettings(BaseSettings):
    """Log level and optional log file for the portfolio graph loggers."""

    level: str = "INFO"
    to_file: bool = False
    file: str = "logs/portfolio_graph.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LOG_",
        case_sensitive=False,
        extra="ignore"
    )


def get_logging_settings() -> LoggingSettings:
    """Get logging settings instance."""
    return LoggingSettings()


def load_workflow_config(filename: str = "workflow_config.json") -> Dict:
    """
    Read a JSON workflow config from the project root.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    config_file = PROJECT_ROOT / filename
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    with open(config_file, 'r', encoding='utf-8') as f:
        return json.load(f)


# Cache for workflow settings
_workflow_settings_cache: Optional[Dict] = None


def get_workflow_settings() -> Dict:
    """
    Get workflow settings from workflow_config.json.

    Holds the loop caps, output limits, confidence-deflation thresholds and
    per-node model options used by the portfolio graph.

    Returns:
        Dictionary of workflow settings
    """
    global _workflow_settings_cache
    if _workflow_settings_cache is None:
        _workflow_settings_cache = load_workflow_config()
    return _workflow_settings_cache


def get_node_llm_options(node_name: str) -> Dict:
    """
    Get temperature / max_tokens for a node's model call.

    Args:
        node_name: Graph node name (e.g., "classify")

    Returns:
        Dictionary with optional "temperature" and "max_tokens" keys
    """
    settings = get_workflow_settings()
    return dict(settings.get("llm_options", {}).get(node_name, {}))
