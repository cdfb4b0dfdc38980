"""OCR boundary: provider factory and result helpers.

The engine never runs OCR on its own; providers created by `create_ocr`
turn an image into an `OCRResult` that the host hands to the engine.
"""
from .confidence import estimate_confidence
from .ocr_adapter import create_ocr

__all__ = ["create_ocr", "estimate_confidence"]
