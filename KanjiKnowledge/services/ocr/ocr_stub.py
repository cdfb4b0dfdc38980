"""Fallback OCR implementation used when no real backend is available.

Returns empty results and logs a clear warning so the host remains
functional on machines without Tesseract installed.
"""
from __future__ import annotations

import logging

from ...core.models import OCRResult

logger = logging.getLogger(__name__)


class StubOCR:
    name = "stub"

    def __init__(self, cfg=None):
        logger.warning('Using OCR stub: no OCR backend available. Install tesseract with the jpn language pack to enable real OCR.')

    def available(self) -> bool:
        return True

    def recognize(self, image, **kwargs) -> OCRResult:
        return OCRResult(text='', confidence=0.0, provider=self.name)
