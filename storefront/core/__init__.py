# Core modules

from .config import Settings, get_settings, settings
from .storage import DurableStore, FileStore, MemoryStore

__all__ = ["Settings", "get_settings", "settings", "DurableStore", "FileStore", "MemoryStore"]
