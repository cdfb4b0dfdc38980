import sys
import json
from pathlib import Path

import pytest

# Add the project root (one level up from 'test') to sys.path
project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from KanjiKnowledge import KanjiEngine, EngineConfig


def kanji_entry(character, meanings, on=(), kun=(), strokes=1, level=None, frequency=None, radicals=()):
    return {
        "character": character,
        "meanings": list(meanings),
        "onReadings": list(on),
        "kunReadings": list(kun),
        "strokeCount": strokes,
        "examLevel": level,
        "frequency": frequency,
        "radicals": list(radicals),
        "examples": [],
    }


TINY_DATASET = {
    "version": "test-1",
    "radicals": [{"radical": "日", "name": "sun", "strokeCount": 4, "meaning": "sun, day", "position": "left"}],
    "kanji": [
        kanji_entry("日", ["day", "sun"], on=["ニチ"], kun=["ひ"], strokes=4, level=5, frequency=1, radicals=["日"]),
        kanji_entry("本", ["book", "origin"], on=["ホン"], kun=["もと"], strokes=5, level=5, frequency=10, radicals=["木"]),
        kanji_entry("人", ["person"], on=["ジン", "ニン"], kun=["ひと"], strokes=2, level=5, frequency=5),
        kanji_entry("学", ["study", "learning"], on=["ガク"], kun=["まな.ぶ"], strokes=8, level=5, frequency=600),
        kanji_entry("勉", ["exertion"], on=["ベン"], strokes=10, level=4, frequency=1600),
        kanji_entry("鬱", ["gloom", "Depression"], on=["ウツ"], strokes=29, level=1),
    ],
}


def write_dataset(path: Path, data) -> Path:
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf8")
    return path


@pytest.fixture
def dataset_path(tmp_path):
    return write_dataset(tmp_path / "tiny.json", TINY_DATASET)


@pytest.fixture
def make_engine(tmp_path):
    """Factory building an uninitialized engine over a database in tmp_path."""
    def _make(dataset, db_name="kanji.db", **ocr):
        cfg = EngineConfig()
        cfg.storage.db_path = str(tmp_path / db_name)
        cfg.catalog.dataset_path = str(dataset)
        for key, value in ocr.items():
            setattr(cfg.ocr, key, value)
        return KanjiEngine(cfg)
    return _make


@pytest.fixture
def engine(make_engine, dataset_path):
    eng = make_engine(dataset_path)
    eng.initialize()
    return eng
