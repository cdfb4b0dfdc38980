"""Kanji knowledge engine: reference catalog, exposure tracking and Japanese text analysis."""
from .core.config import CatalogConfig, EngineConfig, OCRConfig, StorageConfig, load_config
from .core.errors import (
    InitializationError, InvalidArgument, KanjiEngineError, NotFound, PersistenceError,
)
from .engine import KanjiEngine

__all__ = [
    "KanjiEngine",
    "EngineConfig",
    "StorageConfig",
    "CatalogConfig",
    "OCRConfig",
    "load_config",
    "KanjiEngineError",
    "InitializationError",
    "InvalidArgument",
    "NotFound",
    "PersistenceError",
]
