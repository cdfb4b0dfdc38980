"""Engine facade wiring the catalog, exposure store, query engine and text analysis.

The host constructs one `KanjiEngine`, calls `initialize()` once, and then
uses it from any thread. Nothing here is a module-level singleton.

Typical flow:
  1. host runs OCR (or any other text source) and gets a string
  2. `analyze_text` / `analyze_ocr` classifies the kanji as new or known
  3. `score` rates the text difficulty
  4. `commit_analysis` records the encounters once the user has seen them
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from .core.config import EngineConfig
from .core.errors import InvalidArgument
from .core.models import (
    CatalogEntry, CatalogStats, ExposureRecord, KnowledgeStats, OCRResult, SearchResult,
    TextAnalysisResult,
)
from .core.registry import STORAGE_REGISTRY
from .services.catalog.kanji_catalog import ReferenceCatalog
from .services.exposure.exposure_store import ExposureStore
from .services.query.catalog_query import CatalogQueryEngine
from .services.scoring import difficulty
from .services.storage import sqlite_store  # noqa: F401  registers the "sqlite" backend
from .services.text.text_processor import JapaneseTextProcessor

logger = logging.getLogger(__name__)


class KanjiEngine:
    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        storage = self.config.storage
        self.db = STORAGE_REGISTRY.create(storage.backend, storage.db_path, storage.timeout)
        self.catalog = ReferenceCatalog(self.db, self.config.catalog.dataset_path)
        self.exposure = ExposureStore(self.db)
        self.query = CatalogQueryEngine(
            self.catalog, self.exposure,
            default_limit=self.config.catalog.default_limit,
            convenience_limit=self.config.catalog.convenience_limit,
        )
        self.text = JapaneseTextProcessor(self.query)
        self._ocr = None

    def initialize(self) -> None:
        """Create the store and seed the catalog. Raises `InitializationError`."""
        self.catalog.initialize()
        logger.info("Kanji engine ready (%s)", self.config.storage.db_path)

    # --- catalog ---
    def search(self, query: Optional[str] = None, exam_level: Optional[int] = None,
               stroke_count: Optional[int] = None, frequency_class: Optional[str] = None,
               limit: Optional[int] = None, offset: int = 0) -> SearchResult:
        return self.query.search(query=query, exam_level=exam_level, stroke_count=stroke_count,
                                 frequency_class=frequency_class, limit=limit, offset=offset)

    def get_by_character(self, character: str) -> Optional[CatalogEntry]:
        return self.query.get_entry(character)

    def get_stats(self) -> CatalogStats:
        return self.query.get_stats()

    # --- exposure ---
    def get_exposure(self, character: str) -> Optional[ExposureRecord]:
        return self.exposure.get_exposure(character)

    def record_encounters(self, characters: Iterable[str]) -> List[ExposureRecord]:
        return self.exposure.record_encounters(characters)

    def record_answer(self, character: str, correct: bool) -> ExposureRecord:
        return self.exposure.record_answer(character, correct)

    def knowledge_stats(self) -> KnowledgeStats:
        return self.exposure.knowledge_stats()

    def open_detail(self, character: str, record: bool = True) -> Optional[CatalogEntry]:
        """Catalog entry for a detail view; counts one encounter when `record` is set.

        Characters missing from the catalog return None and are not recorded.
        """
        entry = self.query.get_entry(character)
        if entry is None or not record:
            return entry
        updated = self.exposure.record_encounter(character)
        return CatalogEntry(record=entry.record, times_seen=updated.times_seen)

    # --- text ---
    def analyze_text(self, text: str) -> TextAnalysisResult:
        return self.text.analyze_text(text)

    def analyze_ocr(self, ocr_result: OCRResult,
                    min_confidence: Optional[float] = None) -> Optional[TextAnalysisResult]:
        """Clean and analyze OCR output.

        Returns None when the result has no usable text or its confidence is
        below `min_confidence` (defaults to ``config.ocr.min_confidence``).
        """
        threshold = self.config.ocr.min_confidence if min_confidence is None else min_confidence
        if not 0.0 <= threshold <= 1.0:
            raise InvalidArgument("min_confidence must be within [0.0, 1.0]")
        if ocr_result is None or not (ocr_result.text or "").strip():
            logger.debug("OCR result has no text, skipping analysis")
            return None
        if ocr_result.confidence < threshold:
            logger.warning("OCR confidence %.2f below %.2f, skipping analysis",
                           ocr_result.confidence, threshold)
            return None
        cleaned = self.text.clean_text(ocr_result.text)
        if not cleaned:
            return None
        return self.text.analyze_text(cleaned)

    def commit_analysis(self, result: TextAnalysisResult,
                        include_known: bool = False) -> List[ExposureRecord]:
        """Record one encounter for each new kanji of an analysis (or every unique one).

        An analysis with nothing to record is a no-op returning an empty list.
        """
        chars = result.unique_characters if include_known else result.new_characters
        if not chars:
            return []
        return self.exposure.record_encounters(chars)

    def score(self, result: TextAnalysisResult) -> int:
        return difficulty.score(result)

    # --- OCR ---
    def recognize(self, image) -> OCRResult:
        """Run the configured OCR provider on an image. The provider is created lazily."""
        if self._ocr is None:
            from .services.ocr import create_ocr
            self._ocr = create_ocr(self.config.ocr)
        return self._ocr.recognize(image)
