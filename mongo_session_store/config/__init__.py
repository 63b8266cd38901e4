# Configuration module for the session store
from .options import StoreOptions
from .settings import StoreSettings, clear_settings_cache, get_settings, load_settings

__all__ = ["StoreOptions", "StoreSettings", "clear_settings_cache", "get_settings", "load_settings"]
