"""Configuration management package."""

from .settings import Config, load_config, save_config, validate_config
from .defaults import DEFAULT_CONFIG

__all__ = ["Config", "load_config", "save_config", "validate_config", "DEFAULT_CONFIG"]
