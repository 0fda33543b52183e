"""
Configuration loaded from the environment.
"""

from wealthiq.config.settings import SyncSettings, get_settings, reset_settings_cache

__all__ = ["SyncSettings", "get_settings", "reset_settings_cache"]
