"""Configuration schema.

Nested dataclasses with defaults, plus `load_config` which overlays values
from the environment (optionally primed from a ``.env`` file).
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
import os

from dotenv import load_dotenv

from .errors import InvalidArgument

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
BUNDLED_DATASET = PACKAGE_ROOT / "data" / "kanji_seed.json"


@dataclass
class StorageConfig:
    backend: str = "sqlite"
    db_path: str = "data/kanji_knowledge.db"
    timeout: float = 10.0  # seconds to wait on a locked database


@dataclass
class CatalogConfig:
    dataset_path: str = str(BUNDLED_DATASET)
    default_limit: int = 50
    convenience_limit: int = 100  # used by get_by_exam_level / get_by_frequency_class


@dataclass
class OCRConfig:
    backend: str | None = None
    language: str = "jpn"
    tesseract_cmd: str | None = None
    psm: int = 6
    oem: int = 3
    min_confidence: float = 0.0
    preprocess: bool = True


@dataclass
class EngineConfig:
    storage: StorageConfig = field(default_factory=StorageConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise InvalidArgument(f"{name} must be a number, got {raw!r}") from e


def load_config(env_file: str | Path | None = None) -> EngineConfig:
    """Build an `EngineConfig` from defaults overlaid with environment values.

    Recognised variables: ``KANJI_DB_PATH``, ``KANJI_DATASET_PATH``,
    ``OCR_BACKEND``, ``TESSERACT_CMD``, ``OCR_MIN_CONFIDENCE``.
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    cfg = EngineConfig()
    db_path = os.getenv("KANJI_DB_PATH")
    if db_path:
        cfg.storage.db_path = db_path
    dataset = os.getenv("KANJI_DATASET_PATH")
    if dataset:
        cfg.catalog.dataset_path = dataset
    backend = os.getenv("OCR_BACKEND")
    if backend:
        cfg.ocr.backend = backend.strip().lower()
    tess = os.getenv("TESSERACT_CMD")
    if tess:
        cfg.ocr.tesseract_cmd = tess
    cfg.ocr.min_confidence = _env_float("OCR_MIN_CONFIDENCE", cfg.ocr.min_confidence)
    if not 0.0 <= cfg.ocr.min_confidence <= 1.0:
        raise InvalidArgument("OCR_MIN_CONFIDENCE must be within [0.0, 1.0]")
    return cfg
