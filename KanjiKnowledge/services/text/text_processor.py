"""Japanese text extraction and classification.

`analyze_text` finds every kanji in a string, resolves each distinct one
against the catalog and the exposure store, and splits them into new vs
known. It never writes: committing exposure is a separate explicit call,
so OCR can be re-run and re-analyzed freely.
"""
from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Dict, List, Tuple

from ...core.errors import InvalidArgument
from ...core.models import KanjiMatch, KanjiRecord, TextAnalysisResult, TextStats
from ..query.catalog_query import CatalogQueryEngine

logger = logging.getLogger(__name__)

KANJI = "kanji"
HIRAGANA = "hiragana"
KATAKANA = "katakana"
OTHER = "other"

# (first, last) inclusive code point ranges
KANJI_RANGE = (0x4E00, 0x9FFF)  # CJK Unified Ideographs
HIRAGANA_RANGE = (0x3040, 0x309F)
KATAKANA_RANGE = (0x30A0, 0x30FF)

_JAPANESE_PATTERN = re.compile(r"[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FFF]")
# kana, kanji, fullwidth forms, CJK punctuation, whitespace, basic punctuation
_OCR_NOISE_PATTERN = re.compile(r"[^\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FFF\uFF00-\uFFEF\u3000-\u303F\s.,!?\u2026]")
_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_LINE_BREAKS = re.compile(r" ?\n\s*")


def classify_char(ch: str) -> str:
    cp = ord(ch)
    if KANJI_RANGE[0] <= cp <= KANJI_RANGE[1]:
        return KANJI
    if HIRAGANA_RANGE[0] <= cp <= HIRAGANA_RANGE[1]:
        return HIRAGANA
    if KATAKANA_RANGE[0] <= cp <= KATAKANA_RANGE[1]:
        return KATAKANA
    return OTHER


def extract_kanji(text: str) -> List[Tuple[str, int]]:
    """(character, offset) for every kanji, in text order, duplicates kept."""
    return [(ch, i) for i, ch in enumerate(text) if classify_char(ch) == KANJI]


def _unique_sort_key(m: KanjiMatch):
    # new first, then frequency rank (unknown last), then code point
    return (not m.is_new, m.frequency is None, m.frequency or 0, m.character)


def _template(character: str, record: KanjiRecord | None, times_seen: int) -> KanjiMatch:
    if record is None:
        # uncatalogued kanji stay new regardless of recorded exposure
        return KanjiMatch(character=character, position=-1, times_seen=0, is_new=True, resolved=False)
    return KanjiMatch(
        character=character,
        position=-1,
        meanings=record.meanings,
        on_readings=record.on_readings,
        kun_readings=record.kun_readings,
        stroke_count=record.stroke_count,
        exam_level=record.exam_level,
        frequency=record.frequency,
        times_seen=times_seen,
        is_new=times_seen == 0,
        resolved=True,
    )


class JapaneseTextProcessor:
    def __init__(self, query: CatalogQueryEngine) -> None:
        self.query = query

    def analyze_text(self, text: str) -> TextAnalysisResult:
        """Analyze `text` against the catalog and the current exposure snapshot.

        Characters missing from the catalog still produce matches, with
        empty metadata and ``resolved=False``.
        """
        if not isinstance(text, str):
            raise InvalidArgument("analyze_text expects a string")

        occurrences = extract_kanji(text)
        distinct = {ch for ch, _ in occurrences}
        records, seen = self.query.resolve(distinct) if distinct else ({}, {})

        templates: Dict[str, KanjiMatch] = {}
        for ch in distinct:
            record = records.get(ch)
            if record is None:
                logger.warning("Kanji not found in catalog: %s", ch)
            templates[ch] = _template(ch, record, seen.get(ch, 0))

        found = tuple(replace(templates[ch], position=pos) for ch, pos in occurrences)

        first: Dict[str, KanjiMatch] = {}
        for m in found:
            first.setdefault(m.character, m)
        unique = tuple(sorted(first.values(), key=_unique_sort_key))
        new = tuple(m for m in unique if m.is_new)
        known = tuple(m for m in unique if not m.is_new)

        stats = TextStats(
            total_characters=len(text),
            kanji_count=len(found),
            unique_kanji_count=len(unique),
            new_kanji_count=len(new),
            hiragana_count=sum(1 for ch in text if classify_char(ch) == HIRAGANA),
            katakana_count=sum(1 for ch in text if classify_char(ch) == KATAKANA),
        )
        logger.debug("Analyzed text: %d kanji, %d unique, %d new",
                     stats.kanji_count, stats.unique_kanji_count, stats.new_kanji_count)
        return TextAnalysisResult(
            original_text=text, found_kanji=found, unique_kanji=unique,
            new_kanji=new, known_kanji=known, stats=stats,
        )

    def extract_catalog_kanji(self, text: str) -> List[str]:
        """Distinct kanji in `text` that the catalog knows, in first-seen order."""
        ordered = list(dict.fromkeys(ch for ch, _ in extract_kanji(text)))
        if not ordered:
            return []
        known = {r.character for r in self.query.catalog.get_by_characters(ordered)}
        return [ch for ch in ordered if ch in known]

    @staticmethod
    def is_japanese_text(text: str) -> bool:
        return bool(_JAPANESE_PATTERN.search(text or ""))

    @staticmethod
    def clean_text(text: str) -> str:
        """Drop OCR noise and normalize whitespace.

        Kana and kanji are always kept. Line breaks become ``\\n``; runs of
        other whitespace become a single space.
        """
        text = (text or "").replace("\r\n", "\n").replace("\r", "\n")
        text = _OCR_NOISE_PATTERN.sub("", text)
        text = _HORIZONTAL_WS.sub(" ", text)
        text = _LINE_BREAKS.sub("\n", text)
        return text.strip()
