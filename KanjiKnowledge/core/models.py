"""Core data model.

Reference records are frozen; exposure records are snapshots read back from
the store; analysis results are transient values owned by the caller.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Tuple, Optional, Dict, Any

# ---- Frequency classes ----
# Frequency is stored as a numeric rank (lower = more frequent). Classes are
# derived from rank bands; records without a rank are "rare".
VERY_COMMON = "very common"
COMMON = "common"
UNCOMMON = "uncommon"
RARE = "rare"

# class -> (min_rank, max_rank) inclusive; None means unbounded
FREQUENCY_BANDS: Dict[str, Tuple[Optional[int], Optional[int]]] = {
    VERY_COMMON: (1, 500),
    COMMON: (501, 1500),
    UNCOMMON: (1501, 2500),
    RARE: (2501, None),
}

EXAM_LEVELS = (1, 2, 3, 4, 5)


def frequency_class_for(rank: Optional[int]) -> str:
    if rank is None:
        return RARE
    for name, (low, high) in FREQUENCY_BANDS.items():
        if (low is None or rank >= low) and (high is None or rank <= high):
            return name
    return RARE


# ---- Reference catalog ----
@dataclass(frozen=True)
class KanjiRecord:
    character: str
    meanings: Tuple[str, ...] = ()
    on_readings: Tuple[str, ...] = ()
    kun_readings: Tuple[str, ...] = ()
    stroke_count: int = 0
    grade: Optional[int] = None
    exam_level: Optional[int] = None  # JLPT-style 1-5, lower = harder
    frequency: Optional[int] = None  # rank, lower = more frequent
    radicals: Tuple[str, ...] = ()
    mnemonic: Optional[str] = None
    examples: Tuple[str, ...] = ()

    @property
    def frequency_class(self) -> str:
        return frequency_class_for(self.frequency)

    def sort_key(self) -> Tuple[int, str]:
        """Canonical ordering: stroke count, then code point."""
        return (self.stroke_count, self.character)

    def to_dict(self) -> Dict[str, Any]:
        """Dataset (camelCase) representation."""
        return {
            'character': self.character,
            'meanings': list(self.meanings),
            'onReadings': list(self.on_readings),
            'kunReadings': list(self.kun_readings),
            'strokeCount': self.stroke_count,
            'grade': self.grade,
            'examLevel': self.exam_level,
            'frequency': self.frequency,
            'radicals': list(self.radicals),
            'mnemonic': self.mnemonic,
            'examples': list(self.examples),
        }


@dataclass(frozen=True)
class RadicalRecord:
    radical: str
    name: str = ""
    stroke_count: Optional[int] = None
    meaning: str = ""
    position: str = ""


@dataclass(frozen=True)
class CatalogEntry:
    """A reference record joined with its live times-seen count."""
    record: KanjiRecord
    times_seen: int = 0

    @property
    def character(self) -> str:
        return self.record.character


@dataclass
class SearchFilter:
    query: Optional[str] = None
    exam_level: Optional[int] = None
    stroke_count: Optional[int] = None
    frequency_class: Optional[str] = None
    limit: int = 50
    offset: int = 0


@dataclass
class SearchResult:
    results: List[CatalogEntry] = field(default_factory=list)
    total_count: int = 0


@dataclass
class CatalogStats:
    total_kanji: int
    total_radicals: int
    catalog_version: str
    size: str
    last_updated: Optional[str] = None


# ---- Exposure store ----
MASTERY_UNSEEN = 0
MASTERY_SEEN = 1
MASTERY_LEARNING = 2
MASTERY_MASTERED = 3


@dataclass(frozen=True)
class ExposureRecord:
    character: str
    times_seen: int = 0
    times_correct: int = 0
    times_incorrect: int = 0
    first_encountered: Optional[str] = None  # ISO-8601 UTC
    last_seen: Optional[str] = None

    @property
    def accuracy(self) -> float:
        if self.times_seen <= 0:
            return 0.0
        return self.times_correct / self.times_seen

    @property
    def mastery_level(self) -> int:
        if self.times_seen <= 0:
            return MASTERY_UNSEEN
        if self.times_correct >= 3 and self.accuracy >= 0.8:
            return MASTERY_MASTERED
        if self.times_correct >= 1:
            return MASTERY_LEARNING
        return MASTERY_SEEN


@dataclass
class KnowledgeStats:
    total_seen: int = 0
    total_mastered: int = 0
    average_accuracy: float = 0.0


# ---- Text analysis ----
@dataclass(frozen=True)
class KanjiMatch:
    character: str
    position: int
    meanings: Tuple[str, ...] = ()
    on_readings: Tuple[str, ...] = ()
    kun_readings: Tuple[str, ...] = ()
    stroke_count: Optional[int] = None
    exam_level: Optional[int] = None
    frequency: Optional[int] = None
    times_seen: int = 0
    is_new: bool = True
    resolved: bool = False  # False when the catalog has no entry for the character


@dataclass(frozen=True)
class TextStats:
    total_characters: int = 0
    kanji_count: int = 0
    unique_kanji_count: int = 0
    new_kanji_count: int = 0
    hiragana_count: int = 0
    katakana_count: int = 0


@dataclass(frozen=True)
class TextAnalysisResult:
    original_text: str
    found_kanji: Tuple[KanjiMatch, ...] = ()
    unique_kanji: Tuple[KanjiMatch, ...] = ()
    new_kanji: Tuple[KanjiMatch, ...] = ()
    known_kanji: Tuple[KanjiMatch, ...] = ()
    stats: TextStats = field(default_factory=TextStats)

    @property
    def new_characters(self) -> frozenset:
        """Distinct characters to pass to `record_encounters` on commit."""
        return frozenset(m.character for m in self.new_kanji)

    @property
    def unique_characters(self) -> frozenset:
        return frozenset(m.character for m in self.unique_kanji)


# ---- OCR boundary ----
@dataclass
class TextBox:
    text: str
    bbox: Tuple[int, int, int, int]  # (x,y,w,h)
    confidence: Optional[float] = None


@dataclass
class OCRResult:
    text: str
    confidence: float = 0.0  # 0.0 - 1.0
    bounding_boxes: List[TextBox] = field(default_factory=list)
    provider: str = ""
    meta: Dict[str, Any] = field(default_factory=dict)
