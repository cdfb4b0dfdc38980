"""Minimal pytesseract OCR provider.

Wraps ``pytesseract.image_to_data`` to turn a PIL Image (or an image path)
into an `OCRResult`: line-joined text, per-line boxes, and the mean word
confidence scaled to 0.0-1.0.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pytesseract
from PIL import Image, ImageOps, ImageFilter

from ...core.config import OCRConfig
from ...core.models import OCRResult, TextBox
from .confidence import estimate_confidence

logger = logging.getLogger(__name__)


class PyTesseractOCR:
    """Wrapper around pytesseract providing light preprocessing and structured output."""

    name = "tesseract"

    def __init__(self, cfg: OCRConfig | None = None) -> None:
        self.cfg = cfg or OCRConfig()
        if self.cfg.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.cfg.tesseract_cmd

    def available(self) -> bool:
        try:
            pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError):
            logger.debug('tesseract binary not found', exc_info=True)
            return False
        return True

    def _to_pil(self, image) -> Image.Image:
        """Accept a PIL Image or a path to an image file."""
        if isinstance(image, Image.Image):
            return image
        if isinstance(image, (str, Path)):
            with Image.open(image) as im:
                return im.convert('RGB')
        raise TypeError('Unsupported image type for OCR; provide PIL.Image.Image or a file path')

    def _preprocess(self, pil: Image.Image, do_binarize: bool = True) -> Image.Image:
        """Grayscale, despeckle, optional fixed-threshold binarization."""
        img = pil.convert('L')
        img = img.filter(ImageFilter.MedianFilter(size=3))
        if do_binarize:
            img = ImageOps.autocontrast(img)
            threshold = 128
            img = img.point(lambda p: 255 if p > threshold else 0)
        return img

    def _config(self) -> str:
        return f"--psm {self.cfg.psm} --oem {self.cfg.oem}"

    def recognize(self, image, lang: str | None = None) -> OCRResult:
        lang = lang or self.cfg.language
        pil = self._to_pil(image)
        if self.cfg.preprocess:
            pil = self._preprocess(pil)

        data = pytesseract.image_to_data(pil, lang=lang, config=self._config(), output_type=pytesseract.Output.DICT)
        lines, confs = self._group_lines(data, joiner='' if lang.startswith('jpn') else ' ')

        text = '\n'.join(b.text for b in lines)
        if confs:
            confidence = sum(confs) / len(confs) / 100.0
        else:
            confidence = estimate_confidence(text, lines)
        logger.debug('tesseract returned %d lines, confidence=%.2f', len(lines), confidence)
        return OCRResult(text=text, confidence=max(0.0, min(1.0, confidence)), bounding_boxes=lines,
                         provider=self.name, meta={'lang': lang})

    @staticmethod
    def _group_lines(data: Dict[str, List[Any]], joiner: str) -> Tuple[List[TextBox], List[float]]:
        """Aggregate word entries into line boxes keyed by (block, paragraph, line)."""
        order: List[Tuple[int, int, int]] = []
        words: Dict[Tuple[int, int, int], List[int]] = {}
        confs: List[float] = []
        n = len(data.get('text', []))
        for i in range(n):
            txt = (data['text'][i] or '').strip()
            if not txt:
                continue
            try:
                conf = float(data.get('conf', [-1] * n)[i])
            except (TypeError, ValueError):
                conf = -1.0
            if conf >= 0:
                confs.append(conf)
            key = (
                int(data.get('block_num', [0] * n)[i]),
                int(data.get('par_num', [0] * n)[i]),
                int(data.get('line_num', [0] * n)[i]),
            )
            if key not in words:
                order.append(key)
                words[key] = []
            words[key].append(i)

        boxes: List[TextBox] = []
        for key in order:
            idx = words[key]
            left = min(int(data['left'][i]) for i in idx)
            top = min(int(data['top'][i]) for i in idx)
            right = max(int(data['left'][i]) + int(data['width'][i]) for i in idx)
            bottom = max(int(data['top'][i]) + int(data['height'][i]) for i in idx)
            line_confs = [float(data['conf'][i]) for i in idx if float(data['conf'][i]) >= 0]
            boxes.append(TextBox(
                text=joiner.join(data['text'][i].strip() for i in idx),
                bbox=(left, top, right - left, bottom - top),
                confidence=(sum(line_confs) / len(line_confs) / 100.0) if line_confs else None,
            ))
        return boxes, confs
