"""Core configuration for the signal engine."""

from signal_engine.core.config import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]
