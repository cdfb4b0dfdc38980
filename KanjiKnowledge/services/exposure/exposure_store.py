"""Exposure store and knowledge updater.

Per-character counters of how often a kanji has been seen (and answered)
by the learner. Records are created lazily on first encounter and never
deleted; an absent record means times-seen is 0.

Every increment is a single ``INSERT ... ON CONFLICT DO UPDATE`` executed
inside the database's single-writer transaction, so overlapping callers
can never read the same count and both write count + 1.

Retrying is the caller's decision: a call that raised `PersistenceError`
did not commit, so retrying it cannot double count. A call whose outcome is
unknown (e.g. the process died mid-call) should be checked with
`get_exposure` before retrying.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from ...core.errors import InvalidArgument
from ...core.models import ExposureRecord, KnowledgeStats
from ..storage.sqlite_store import SQLiteDatabase

logger = logging.getLogger(__name__)

# stay well under SQLite's bound-parameter limit
_CHUNK = 500

_UPSERT = """
    INSERT INTO exposure (character, times_seen, times_correct, times_incorrect, first_encountered, last_seen)
    VALUES (?, 1, ?, ?, ?, ?)
    ON CONFLICT(character) DO UPDATE SET
        times_seen = times_seen + 1,
        times_correct = times_correct + excluded.times_correct,
        times_incorrect = times_incorrect + excluded.times_incorrect,
        last_seen = excluded.last_seen;
"""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _record_from_row(row: sqlite3.Row) -> ExposureRecord:
    return ExposureRecord(
        character=row["character"],
        times_seen=int(row["times_seen"]),
        times_correct=int(row["times_correct"]),
        times_incorrect=int(row["times_incorrect"]),
        first_encountered=row["first_encountered"],
        last_seen=row["last_seen"],
    )


def _check_character(character) -> str:
    if not isinstance(character, str) or len(character) != 1:
        raise InvalidArgument(f"Expected a single character, got {character!r}")
    return character


class ExposureStore:
    def __init__(self, db: SQLiteDatabase, clock: Callable[[], str] = _utc_now) -> None:
        self.db = db
        self._clock = clock

    # --- reads ---
    def get_exposure(self, character: str) -> Optional[ExposureRecord]:
        with self.db.read() as conn:
            row = conn.execute("SELECT * FROM exposure WHERE character = ?;", (character,)).fetchone()
        return _record_from_row(row) if row else None

    def get_exposures(self, characters: Iterable[str]) -> Dict[str, ExposureRecord]:
        """Snapshot of existing records for the given characters (absent ones omitted)."""
        chars = sorted(set(characters))
        out: Dict[str, ExposureRecord] = {}
        if not chars:
            return out
        with self.db.read() as conn:
            for i in range(0, len(chars), _CHUNK):
                chunk = chars[i:i + _CHUNK]
                marks = ",".join("?" * len(chunk))
                for row in conn.execute(f"SELECT * FROM exposure WHERE character IN ({marks});", chunk):
                    out[row["character"]] = _record_from_row(row)
        return out

    def times_seen(self, characters: Iterable[str]) -> Dict[str, int]:
        """times-seen for every requested character, 0 when never encountered."""
        chars = set(characters)
        found = self.get_exposures(chars)
        return {c: (found[c].times_seen if c in found else 0) for c in chars}

    # --- writes ---
    def record_encounter(self, character: str) -> ExposureRecord:
        """Increment times-seen by exactly one and return the committed record."""
        return self.record_encounters([character])[0]

    def record_encounters(self, characters: Iterable[str]) -> List[ExposureRecord]:
        """Add one encounter per distinct character, all in one transaction.

        Duplicates within `characters` count once. Returns the committed
        records in code point order.
        """
        chars = sorted({_check_character(c) for c in characters})
        if not chars:
            raise InvalidArgument("record_encounters requires at least one character")
        now = self._clock()
        with self.db.write() as conn:
            conn.executemany(_UPSERT, [(c, 0, 0, now, now) for c in chars])
            rows = []
            for i in range(0, len(chars), _CHUNK):
                chunk = chars[i:i + _CHUNK]
                marks = ",".join("?" * len(chunk))
                rows.extend(conn.execute(
                    f"SELECT * FROM exposure WHERE character IN ({marks}) ORDER BY character;", chunk
                ).fetchall())
        logger.debug("Recorded encounters for %d kanji", len(chars))
        return [_record_from_row(r) for r in rows]

    def record_answer(self, character: str, correct: bool) -> ExposureRecord:
        """Record a quiz answer: one encounter plus one correct or incorrect mark."""
        _check_character(character)
        now = self._clock()
        with self.db.write() as conn:
            conn.execute(_UPSERT, (character, 1 if correct else 0, 0 if correct else 1, now, now))
            row = conn.execute("SELECT * FROM exposure WHERE character = ?;", (character,)).fetchone()
        return _record_from_row(row)

    # --- aggregates ---
    def knowledge_stats(self) -> KnowledgeStats:
        with self.db.read() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total_seen,
                    AVG(CAST(times_correct AS REAL) / times_seen) AS avg_accuracy,
                    COUNT(CASE WHEN times_correct >= 3
                               AND CAST(times_correct AS REAL) / times_seen >= 0.8 THEN 1 END) AS mastered
                FROM exposure WHERE times_seen > 0;
                """
            ).fetchone()
        return KnowledgeStats(
            total_seen=int(row["total_seen"] or 0),
            total_mastered=int(row["mastered"] or 0),
            average_accuracy=float(row["avg_accuracy"] or 0.0),
        )
