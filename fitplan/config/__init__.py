"""Application configuration module.

- **settings.py**: Environment-based settings (Pydantic BaseSettings)
  - Library/media directories, LLM config, muscle catalog endpoint
  - Loaded from .env file via pydantic-settings

Matching weights and thresholds live next to the matcher in
``fitplan.ml.matching.constants``; they are not environment-tunable.
"""
from fitplan.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
