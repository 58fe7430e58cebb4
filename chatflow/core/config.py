# chatflow/core/config.py
from typing import Dict, List, Optional
import logging

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings, read from the environment and .env"""
    APP_NAME: str = "Chatflow"
    DEBUG: bool = False

    # LLM settings
    OPENAI_API_KEY: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("OPENAI_API_KEY", "OPENAI_APIKEY")
    )
    GPT_MODEL: str = "gpt-4o-mini"
    GPT_TEMPERATURE: float = 0.7

    # Agents that nodes link to by id; JSON list of {"id", "name", "personality"}
    AGENT_PROFILES: List[Dict[str, str]] = []

    # Flow execution
    MAX_STEPS: int = 500
    MAX_WAIT_SECONDS: float = 2.0
    DELAY_SCALE: float = 0.1

    # Preview collaborators: simulate AI nodes and skip real webhooks by default
    PREVIEW_SIMULATE_AI: bool = True
    PREVIEW_HTTP_ENABLED: bool = False
    HTTP_TIMEOUT: float = 30.0

    # API
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Shared settings instance
settings = Settings()


def validate_required_settings() -> bool:
    """Warn about settings that the configured collaborators need"""
    missing = []

    if not settings.PREVIEW_SIMULATE_AI and not settings.OPENAI_API_KEY:
        missing.append("OPENAI_API_KEY/OPENAI_APIKEY")

    if missing:
        logger.warning(f"Missing environment variables: {', '.join(missing)}")
        logger.warning("AI nodes will fall back to simulated responses.")
        return False

    return True
