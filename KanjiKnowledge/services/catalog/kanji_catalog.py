"""Reference catalog: immutable kanji metadata seeded once from the bundled dataset."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from ...core.errors import InitializationError, InvalidArgument, PersistenceError
from ...core.models import (
    EXAM_LEVELS, FREQUENCY_BANDS, RARE, KanjiRecord, RadicalRecord, SearchFilter,
)
from ..data_prep.kanji_sources import KanjiDataset, load_dataset
from ..storage.sqlite_store import SQLiteDatabase

logger = logging.getLogger(__name__)

ORDER_BY = "ORDER BY k.stroke_count ASC, k.character ASC"

_INSERT_KANJI = (
    "INSERT OR IGNORE INTO kanji (character, meanings, on_readings, kun_readings, stroke_count, "
    "grade, exam_level, frequency, radicals, mnemonic, examples) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);"
)
_INSERT_RADICAL = (
    "INSERT OR IGNORE INTO radicals (radical, name, stroke_count, meaning, position) VALUES (?, ?, ?, ?, ?);"
)


def _dump(values: Iterable[str]) -> str:
    return json.dumps(list(values), ensure_ascii=False)


def _kanji_row(r: KanjiRecord) -> tuple:
    return (
        r.character, _dump(r.meanings), _dump(r.on_readings), _dump(r.kun_readings), r.stroke_count,
        r.grade, r.exam_level, r.frequency, _dump(r.radicals), r.mnemonic, _dump(r.examples),
    )


def record_from_row(row: sqlite3.Row) -> KanjiRecord:
    return KanjiRecord(
        character=row["character"],
        meanings=tuple(json.loads(row["meanings"])),
        on_readings=tuple(json.loads(row["on_readings"])),
        kun_readings=tuple(json.loads(row["kun_readings"])),
        stroke_count=int(row["stroke_count"]),
        grade=row["grade"],
        exam_level=row["exam_level"],
        frequency=row["frequency"],
        radicals=tuple(json.loads(row["radicals"])),
        mnemonic=row["mnemonic"],
        examples=tuple(json.loads(row["examples"])),
    )


def validate_filter(f: SearchFilter) -> None:
    """Reject malformed search parameters instead of clamping them."""
    if isinstance(f.limit, bool) or not isinstance(f.limit, int) or f.limit <= 0:
        raise InvalidArgument(f"limit must be a positive integer, got {f.limit!r}")
    if isinstance(f.offset, bool) or not isinstance(f.offset, int) or f.offset < 0:
        raise InvalidArgument(f"offset must be a non-negative integer, got {f.offset!r}")
    if f.exam_level is not None and f.exam_level not in EXAM_LEVELS:
        raise InvalidArgument(f"exam_level must be one of {EXAM_LEVELS}, got {f.exam_level!r}")
    if f.stroke_count is not None and (
        isinstance(f.stroke_count, bool) or not isinstance(f.stroke_count, int) or f.stroke_count <= 0
    ):
        raise InvalidArgument(f"stroke_count must be a positive integer, got {f.stroke_count!r}")
    if f.frequency_class is not None and f.frequency_class not in FREQUENCY_BANDS:
        raise InvalidArgument(
            f"frequency_class must be one of {sorted(FREQUENCY_BANDS)}, got {f.frequency_class!r}"
        )
    if f.query is not None and not isinstance(f.query, str):
        raise InvalidArgument("query must be a string")


def build_where(f: SearchFilter) -> Tuple[str, List[Any]]:
    """Translate a filter into a WHERE clause over the ``kanji k`` alias.

    The query clause ORs character, meanings (case-insensitive) and both
    reading lists; every other field is ANDed.
    """
    clauses: List[str] = []
    params: List[Any] = []
    if f.query:
        clauses.append(
            "(instr(k.character, ?) > 0"
            " OR EXISTS (SELECT 1 FROM json_each(k.meanings) m WHERE instr(py_lower(m.value), ?) > 0)"
            " OR EXISTS (SELECT 1 FROM json_each(k.on_readings) o WHERE instr(o.value, ?) > 0)"
            " OR EXISTS (SELECT 1 FROM json_each(k.kun_readings) u WHERE instr(u.value, ?) > 0))"
        )
        params.extend([f.query, f.query.lower(), f.query, f.query])
    if f.exam_level is not None:
        clauses.append("k.exam_level = ?")
        params.append(f.exam_level)
    if f.stroke_count is not None:
        clauses.append("k.stroke_count = ?")
        params.append(f.stroke_count)
    if f.frequency_class is not None:
        low, high = FREQUENCY_BANDS[f.frequency_class]
        band = []
        if low is not None:
            band.append("k.frequency >= ?")
            params.append(low)
        if high is not None:
            band.append("k.frequency <= ?")
            params.append(high)
        clause = " AND ".join(band)
        if f.frequency_class == RARE:
            clause = f"(k.frequency IS NULL OR ({clause}))"
        clauses.append(clause)
    where = ("WHERE " + " AND ".join(clauses)) if clauses else ""
    return where, params


class ReferenceCatalog:
    """Read-many, write-once store of `KanjiRecord`s.

    `initialize()` must succeed before any read is served. Seeding happens
    inside one write transaction with insert-if-absent semantics, so a
    failed attempt leaves nothing behind and repeated attempts never duplicate rows.
    """

    def __init__(self, db: SQLiteDatabase, dataset_path: str | Path) -> None:
        self.db = db
        self.dataset_path = Path(dataset_path)
        self._init_lock = threading.Lock()
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    def initialize(self) -> None:
        """Create the schema and seed the catalog if it is empty.

        Raises `InitializationError` when the store cannot be created or the
        dataset is missing, corrupt, or fails to load.
        """
        with self._init_lock:
            if self._ready:
                return
            self.db.create_schema()
            try:
                with self.db.read() as conn:
                    count = conn.execute("SELECT COUNT(*) FROM kanji;").fetchone()[0]
                if count == 0:
                    logger.info("Catalog empty, seeding from %s", self.dataset_path)
                    self._seed(load_dataset(self.dataset_path), replace=False)
                else:
                    logger.info("Catalog already contains %d kanji", count)
            except PersistenceError as e:
                raise InitializationError(f"Catalog seeding failed: {e}") from e
            self._ready = True

    def reseed(self, dataset_path: str | Path | None = None) -> int:
        """Replace every reference row from a dataset; exposure history is untouched.

        Returns the number of kanji now in the catalog.
        """
        self._require_ready()
        path = Path(dataset_path) if dataset_path else self.dataset_path
        dataset = load_dataset(path)
        with self._init_lock:
            self._seed(dataset, replace=True)
        logger.info("Catalog re-seeded from %s", path)
        return len(dataset.kanji)

    def _seed(self, dataset: KanjiDataset, replace: bool) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self.db.write() as conn:
            if replace:
                conn.execute("DELETE FROM kanji;")
                conn.execute("DELETE FROM radicals;")
            conn.executemany(_INSERT_KANJI, [_kanji_row(r) for r in dataset.kanji])
            conn.executemany(
                _INSERT_RADICAL,
                [(r.radical, r.name, r.stroke_count, r.meaning, r.position) for r in dataset.all_radicals()],
            )
            conn.executemany(
                "INSERT OR REPLACE INTO catalog_metadata(key, value) VALUES (?, ?);",
                [("catalog_version", dataset.version), ("seeded_at", now)],
            )
        logger.info("Seeded %d kanji", len(dataset.kanji))

    def _require_ready(self) -> None:
        if not self._ready:
            raise InitializationError("Reference catalog not initialized")

    # --- lookups ---
    def get_by_character(self, character: str) -> Optional[KanjiRecord]:
        self._require_ready()
        with self.db.read() as conn:
            row = conn.execute("SELECT * FROM kanji WHERE character = ?;", (character,)).fetchone()
        return record_from_row(row) if row else None

    def get_by_characters(self, characters: Iterable[str]) -> List[KanjiRecord]:
        """Batch lookup; unknown characters are omitted. Canonical order."""
        self._require_ready()
        chars = sorted(set(characters))
        if not chars:
            return []
        records: List[KanjiRecord] = []
        with self.db.read() as conn:
            # stay well under SQLite's bound-parameter limit
            for i in range(0, len(chars), 500):
                chunk = chars[i:i + 500]
                marks = ",".join("?" * len(chunk))
                rows = conn.execute(f"SELECT * FROM kanji WHERE character IN ({marks});", chunk).fetchall()
                records.extend(record_from_row(r) for r in rows)
        records.sort(key=KanjiRecord.sort_key)
        return records

    def get_all(self) -> List[KanjiRecord]:
        self._require_ready()
        with self.db.read() as conn:
            rows = conn.execute(f"SELECT * FROM kanji k {ORDER_BY};").fetchall()
        return [record_from_row(r) for r in rows]

    def has_kanji(self, character: str) -> bool:
        self._require_ready()
        with self.db.read() as conn:
            row = conn.execute("SELECT 1 FROM kanji WHERE character = ?;", (character,)).fetchone()
        return row is not None

    def search(self, f: SearchFilter) -> Tuple[List[KanjiRecord], int]:
        """Filtered, sorted, paginated search. Returns (page, total matches before paging)."""
        self._require_ready()
        validate_filter(f)
        where, params = build_where(f)
        with self.db.read() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM kanji k {where};", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT k.* FROM kanji k {where} {ORDER_BY} LIMIT ? OFFSET ?;",
                [*params, f.limit, f.offset],
            ).fetchall()
        return [record_from_row(r) for r in rows], int(total)

    # --- aggregate info ---
    def count(self) -> int:
        self._require_ready()
        with self.db.read() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM kanji;").fetchone()[0])

    def count_radicals(self) -> int:
        self._require_ready()
        with self.db.read() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM radicals;").fetchone()[0])

    def get_radicals(self) -> List[RadicalRecord]:
        self._require_ready()
        with self.db.read() as conn:
            rows = conn.execute("SELECT * FROM radicals ORDER BY radical;").fetchall()
        return [
            RadicalRecord(
                radical=r["radical"], name=r["name"], stroke_count=r["stroke_count"],
                meaning=r["meaning"], position=r["position"],
            )
            for r in rows
        ]

    def metadata(self, key: str) -> Optional[str]:
        self._require_ready()
        with self.db.read() as conn:
            row = conn.execute("SELECT value FROM catalog_metadata WHERE key = ?;", (key,)).fetchone()
        return row["value"] if row else None
