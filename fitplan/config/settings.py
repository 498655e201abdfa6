"""Application configuration settings."""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "FitPlan"
    debug: bool = False

    # Exercise library (one HTML document per muscle group)
    library_dir: str = "workout"
    media_dir: str = "workout/Images"
    library_manifest: str = "library.yaml"  # Relative to library_dir; optional

    # Plan composition
    default_exercises_per_muscle: int = 3

    # OpenAI/LLM settings (coaching notes and section overviews)
    openai_api_key: str = ""  # Set via environment variable OPENAI_API_KEY
    openai_base_url: str = "https://api.openai.com/v1"  # Can be changed for OpenRouter, etc.
    openai_model: str = "gpt-4o-mini"
    openai_timeout: float = 20.0  # seconds
    openai_temperature: float = 0.7

    # LLM Provider
    llm_provider: Literal["openai"] = "openai"

    # Coaching prompt defaults
    default_experience_level: str = "intermediate"
    default_available_equipment: str = "basic gym setup"

    # Muscle catalog (wger)
    wger_base_url: str = "https://wger.de/api/v2"
    wger_api_key: str = ""
    wger_timeout: float = 15.0  # seconds
    wger_page_size: int = 200

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
