"""
Configuration module for the soulcrush application tracker.
"""

from soulcrush.config.settings import settings, Settings, default_database_path

__all__ = ["settings", "Settings", "default_database_path"]
