"""Configuration module for loading and accessing library settings."""

from ..exceptions import ConfigurationError
from .loader import Config, config

__all__ = ["Config", "ConfigurationError", "config"]
