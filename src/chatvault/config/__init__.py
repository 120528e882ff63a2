from .settings import Settings, Strictness, load_settings

__all__ = ["Settings", "Strictness", "load_settings"]
