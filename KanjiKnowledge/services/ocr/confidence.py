"""Confidence heuristic for OCR text without a provider-reported score."""
from __future__ import annotations

import re
from typing import Sequence

from ...core.models import TextBox

_HIRAGANA = re.compile(r'[\u3040-\u309F]')
_KATAKANA = re.compile(r'[\u30A0-\u30FF]')
_KANJI = re.compile(r'[\u4E00-\u9FFF]')


def estimate_confidence(text: str, boxes: Sequence[TextBox] = ()) -> float:
    """Up to 0.5 from text length, +0.15 hiragana, +0.15 katakana, +0.2 kanji,
    up to 0.2 for multiple text boxes; capped at 1.0.
    """
    text = text or ''
    confidence = 0.0
    if text:
        confidence += min(len(text) / 100, 0.5)
    if _HIRAGANA.search(text):
        confidence += 0.15
    if _KATAKANA.search(text):
        confidence += 0.15
    if _KANJI.search(text):
        confidence += 0.2
    if len(boxes) > 1:
        confidence += min(len(boxes) / 20, 0.2)
    return min(confidence, 1.0)
