"""
Configuration management for Backend Carstarz.

Loads settings from environment variables and an optional .env file.
"""

from backend_carstarz.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
