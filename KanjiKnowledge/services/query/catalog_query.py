"""Catalog query engine.

Wraps `ReferenceCatalog` lookups and searches with live times-seen counts
from the `ExposureStore`.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ...core.models import CatalogEntry, CatalogStats, KanjiRecord, SearchFilter, SearchResult
from ..catalog.kanji_catalog import ReferenceCatalog
from ..exposure.exposure_store import ExposureStore

logger = logging.getLogger(__name__)


def _format_size(num_bytes: int) -> str:
    return f"{num_bytes / 1024:.1f} KB"


class CatalogQueryEngine:
    def __init__(self, catalog: ReferenceCatalog, exposure: ExposureStore,
                 default_limit: int = 50, convenience_limit: int = 100) -> None:
        self.catalog = catalog
        self.exposure = exposure
        self.default_limit = default_limit
        self.convenience_limit = convenience_limit

    def _join(self, records: List[KanjiRecord]) -> List[CatalogEntry]:
        seen = self.exposure.times_seen(r.character for r in records)
        return [CatalogEntry(record=r, times_seen=seen.get(r.character, 0)) for r in records]

    def search(self, query: Optional[str] = None, exam_level: Optional[int] = None,
               stroke_count: Optional[int] = None, frequency_class: Optional[str] = None,
               limit: Optional[int] = None, offset: int = 0) -> SearchResult:
        """Filtered, paginated search joined with times-seen.

        `total_count` counts every match before `limit`/`offset` are applied.
        Raises `InvalidArgument` for a non-positive limit or negative offset.
        """
        f = SearchFilter(
            query=query, exam_level=exam_level, stroke_count=stroke_count,
            frequency_class=frequency_class,
            limit=self.default_limit if limit is None else limit, offset=offset,
        )
        records, total = self.catalog.search(f)
        logger.debug("search %s -> %d of %d", f, len(records), total)
        return SearchResult(results=self._join(records), total_count=total)

    def get_by_exam_level(self, level: int) -> SearchResult:
        """Thin wrapper over `search` with only the exam level set."""
        return self.search(exam_level=level, limit=self.convenience_limit)

    def get_by_frequency_class(self, frequency_class: str) -> SearchResult:
        """Thin wrapper over `search` with only the frequency class set."""
        return self.search(frequency_class=frequency_class, limit=self.convenience_limit)

    def get_entry(self, character: str) -> Optional[CatalogEntry]:
        record = self.catalog.get_by_character(character)
        if record is None:
            return None
        return self._join([record])[0]

    def resolve(self, characters: Iterable[str]) -> Tuple[Dict[str, KanjiRecord], Dict[str, int]]:
        """Catalog records (present ones only) and times-seen (all, 0 if unseen)."""
        chars = set(characters)
        records = {r.character: r for r in self.catalog.get_by_characters(chars)}
        return records, self.exposure.times_seen(chars)

    def get_stats(self) -> CatalogStats:
        # recomputed on every call so it always matches get_all()
        return CatalogStats(
            total_kanji=self.catalog.count(),
            total_radicals=self.catalog.count_radicals(),
            catalog_version=self.catalog.metadata("catalog_version") or "unknown",
            size=_format_size(self.catalog.db.file_size()),
            last_updated=self.catalog.metadata("seeded_at"),
        )
