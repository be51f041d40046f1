"""Configuration module for GPlayBot."""

from .settings import Settings, StreamQuality, get_settings

__all__ = ["Settings", "StreamQuality", "get_settings"]
