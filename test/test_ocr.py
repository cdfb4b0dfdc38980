import pytest
import pytesseract
from PIL import Image

from KanjiKnowledge import InvalidArgument
from KanjiKnowledge.core.config import OCRConfig
from KanjiKnowledge.core.models import OCRResult, TextBox
from KanjiKnowledge.services.ocr import create_ocr, estimate_confidence
from KanjiKnowledge.services.ocr.ocr_stub import StubOCR
from KanjiKnowledge.services.ocr.pytesseract_service import PyTesseractOCR


@pytest.fixture(autouse=True)
def no_backend_env(monkeypatch):
    monkeypatch.delenv("OCR_BACKEND", raising=False)


def _fake_data(*args, **kwargs):
    return {
        'text': ['', '日本', '語', '勉強'],
        'conf': ['-1', '90', '80', '70'],
        'block_num': [1, 1, 1, 1],
        'par_num': [1, 1, 1, 1],
        'line_num': [0, 1, 1, 2],
        'left': [0, 0, 20, 0],
        'top': [0, 0, 0, 30],
        'width': [100, 20, 10, 20],
        'height': [50, 10, 10, 10],
    }


def test_estimate_confidence():
    assert estimate_confidence('') == 0.0
    assert estimate_confidence('abc') == pytest.approx(0.03)
    # length 4 plus hiragana, katakana and kanji
    assert estimate_confidence('日はカタ') == pytest.approx(0.54)
    boxes = [TextBox(text='x', bbox=(0, 0, 1, 1))] * 10
    assert estimate_confidence('日' * 200, boxes) == pytest.approx(0.9)
    assert estimate_confidence('日はカ' * 100, boxes) == 1.0


def test_tesseract_groups_lines(monkeypatch):
    monkeypatch.setattr(pytesseract, 'image_to_data', _fake_data)
    res = PyTesseractOCR(OCRConfig()).recognize(Image.new('RGB', (40, 40), 'white'))
    assert res.provider == 'tesseract'
    assert res.text == '日本語\n勉強'
    assert res.confidence == pytest.approx(0.8)
    assert [b.text for b in res.bounding_boxes] == ['日本語', '勉強']
    assert res.bounding_boxes[0].bbox == (0, 0, 30, 10)
    assert res.bounding_boxes[0].confidence == pytest.approx(0.85)


def test_tesseract_falls_back_to_heuristic(monkeypatch):
    def _no_conf(*args, **kwargs):
        data = _fake_data()
        data['conf'] = ['-1'] * 4
        return data

    monkeypatch.setattr(pytesseract, 'image_to_data', _no_conf)
    res = PyTesseractOCR(OCRConfig(preprocess=False)).recognize(Image.new('RGB', (40, 40), 'white'))
    assert res.confidence == pytest.approx(estimate_confidence(res.text, res.bounding_boxes))


def test_tesseract_rejects_unsupported_input():
    with pytest.raises(TypeError):
        PyTesseractOCR().recognize(b'not an image')


def test_create_ocr_falls_back_to_stub(monkeypatch):
    def _missing():
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(pytesseract, 'get_tesseract_version', _missing)
    provider = create_ocr(OCRConfig())
    assert isinstance(provider, StubOCR)
    assert provider.recognize(None).text == ''


def test_create_ocr_explicit_backends(monkeypatch):
    monkeypatch.setattr(pytesseract, 'get_tesseract_version', lambda: '5.3.0')
    assert isinstance(create_ocr(OCRConfig(backend='tess')), PyTesseractOCR)
    monkeypatch.setenv('OCR_BACKEND', 'stub')
    assert isinstance(create_ocr(OCRConfig(backend='tesseract')), StubOCR)


def test_create_ocr_unknown_backend():
    with pytest.raises(RuntimeError):
        create_ocr(OCRConfig(backend='easyocr'))


def test_analyze_ocr_skips_empty_and_low_confidence(engine):
    assert engine.analyze_ocr(OCRResult(text='   ', confidence=1.0)) is None
    assert engine.analyze_ocr(OCRResult(text='日本', confidence=0.2), min_confidence=0.5) is None
    with pytest.raises(InvalidArgument):
        engine.analyze_ocr(OCRResult(text='日本', confidence=0.2), min_confidence=2)


def test_analyze_ocr_cleans_text(engine):
    result = engine.analyze_ocr(OCRResult(text='日本|語\r\n人@', confidence=0.9), min_confidence=0.5)
    assert result.original_text == '日本語\n人'
    assert [m.character for m in result.found_kanji] == ['日', '本', '語', '人']


def test_engine_recognize_uses_configured_provider(make_engine, dataset_path):
    eng = make_engine(dataset_path, backend='stub')
    res = eng.recognize(Image.new('RGB', (10, 10)))
    assert res.provider == 'stub'
    assert eng.analyze_ocr(res) is None
