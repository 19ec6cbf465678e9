"""Configuration module — exports Settings and load_config."""

from ragkit.config.loader import load_config
from ragkit.config.settings import Settings

__all__ = ["Settings", "load_config"]
