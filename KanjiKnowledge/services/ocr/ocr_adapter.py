"""Factory for OCR providers.

`create_ocr(cfg=None)` prefers the ``OCR_BACKEND`` environment variable,
then ``cfg.backend``. Supported backends are registered in `OCR_REGISTRY`:
``tesseract`` (pytesseract) and ``stub``. With nothing requested, tesseract
is used when its binary is reachable, otherwise the stub.
"""
from __future__ import annotations

import os
import logging

from ...core.config import OCRConfig
from ...core.registry import OCR_REGISTRY
from .ocr_stub import StubOCR
from .pytesseract_service import PyTesseractOCR

logger = logging.getLogger(__name__)

OCR_REGISTRY.register('tesseract', PyTesseractOCR)
OCR_REGISTRY.register('stub', StubOCR)

_ALIASES = {'pytesseract': 'tesseract', 'tess': 'tesseract', 'none': 'stub'}


def _select_backend_name(cfg: OCRConfig | None) -> str | None:
    # Env var takes precedence
    be = os.getenv('OCR_BACKEND')
    if be:
        return be.strip().lower()
    if cfg is not None and cfg.backend:
        return cfg.backend.strip().lower()
    return None


def create_ocr(cfg: OCRConfig | None = None):
    """Create an OCR provider implementing `recognize(image) -> OCRResult`.

    Raises RuntimeError when an explicitly requested backend is unknown or
    unavailable.
    """
    cfg = cfg or OCRConfig()
    backend = _select_backend_name(cfg)

    if backend:
        name = _ALIASES.get(backend, backend)
        if name not in OCR_REGISTRY:
            msg = f"Unknown OCR backend '{backend}'. Supported: {', '.join(OCR_REGISTRY.names())}"
            logger.error(msg)
            raise RuntimeError(msg)
        provider = OCR_REGISTRY.create(name, cfg)
        if not provider.available():
            msg = f"Requested OCR backend '{backend}' is not available."
            logger.error(msg)
            raise RuntimeError(msg)
        logger.info('Using %s OCR backend', name)
        return provider

    # No explicit backend: try tesseract; otherwise stub
    provider = OCR_REGISTRY.create('tesseract', cfg)
    if provider.available():
        logger.info('Using tesseract OCR backend (lang=%s)', cfg.language)
        return provider
    logger.warning('No OCR backend available. Falling back to stub.')
    return OCR_REGISTRY.create('stub', cfg)

