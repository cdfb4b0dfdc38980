"""Reading difficulty score.

    raw = 1 + kanji_ratio * 3 + new_ratio * 4 + (6 - avg_exam_level) * 0.5

rounded half-up and clamped to [1, 10]. `avg_exam_level` averages the
known exam levels of the new kanji and defaults to 3 when none is known.
"""
from __future__ import annotations

import math

from ...core.models import TextAnalysisResult

MIN_SCORE = 1
MAX_SCORE = 10
DEFAULT_EXAM_LEVEL = 3.0


def raw_score(result: TextAnalysisResult) -> float:
    stats = result.stats
    if stats.kanji_count <= 0:
        return float(MIN_SCORE)
    kanji_ratio = stats.kanji_count / stats.total_characters if stats.total_characters else 0.0
    new_ratio = stats.new_kanji_count / stats.unique_kanji_count if stats.unique_kanji_count else 0.0
    levels = [m.exam_level for m in result.new_kanji if m.exam_level is not None]
    avg_level = sum(levels) / len(levels) if levels else DEFAULT_EXAM_LEVEL
    return 1 + kanji_ratio * 3 + new_ratio * 4 + (6 - avg_level) * 0.5


def score(result: TextAnalysisResult) -> int:
    """Integer difficulty in [1, 10]; 1 for text without kanji."""
    if result.stats.kanji_count <= 0:
        return MIN_SCORE
    rounded = math.floor(raw_score(result) + 0.5)
    return max(MIN_SCORE, min(MAX_SCORE, rounded))
