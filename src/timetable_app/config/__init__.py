from .settings import Settings, load_settings, refresh_settings, settings

__all__ = ["Settings", "settings", "load_settings", "refresh_settings"]
