"""Configuration module"""

from .models import EngineConfig, QuoteSourceConfig, Settings

__all__ = ["EngineConfig", "QuoteSourceConfig", "Settings"]
