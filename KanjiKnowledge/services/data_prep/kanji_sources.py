"""Kanji dataset preparation.

Loads and validates the bundled reference dataset, and builds new datasets
from Kanjidic2 XML so the bundled file can be regenerated.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import xml.etree.ElementTree as ET
import gzip
import logging
import json
import argparse
import os
from pathlib import Path

from jsonschema import Draft7Validator

from ...core.errors import InitializationError
from ...core.models import FREQUENCY_BANDS, KanjiRecord, RadicalRecord

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0"

_STRING_LIST = {"type": "array", "items": {"type": "string"}}
_OPTIONAL_INT = {"type": ["integer", "null"]}

KANJI_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["character", "meanings", "onReadings", "kunReadings", "strokeCount"],
    "properties": {
        "character": {"type": "string", "minLength": 1, "maxLength": 1},
        "meanings": _STRING_LIST,
        "onReadings": _STRING_LIST,
        "kunReadings": _STRING_LIST,
        "strokeCount": {"type": "integer", "minimum": 1},
        "grade": _OPTIONAL_INT,
        "examLevel": {"type": ["integer", "null"], "minimum": 1, "maximum": 5},
        "frequency": {"type": ["integer", "null"], "minimum": 1},
        # numeric rank, or one of the frequency class names
        "frequencyClass": {"anyOf": [
            {"type": "integer", "minimum": 1},
            {"enum": list(FREQUENCY_BANDS)},
            {"type": "null"},
        ]},
        "radicals": _STRING_LIST,
        "mnemonic": {"type": ["string", "null"]},
        "examples": _STRING_LIST,
    },
}

RADICAL_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["radical"],
    "properties": {
        "radical": {"type": "string", "minLength": 1},
        "name": {"type": "string"},
        "strokeCount": _OPTIONAL_INT,
        "meaning": {"type": "string"},
        "position": {"type": "string"},
    },
}

LIST_DATASET_SCHEMA: Dict[str, Any] = {"type": "array", "items": KANJI_SCHEMA}

OBJECT_DATASET_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["kanji"],
    "properties": {
        "version": {"type": "string"},
        "kanji": {"type": "array", "items": KANJI_SCHEMA},
        "radicals": {"type": "array", "items": RADICAL_SCHEMA},
    },
}


@dataclass
class KanjiDataset:
    """Everything needed to seed the reference catalog."""
    kanji: List[KanjiRecord] = field(default_factory=list)
    radicals: List[RadicalRecord] = field(default_factory=list)
    version: str = DEFAULT_VERSION

    def all_radicals(self) -> List[RadicalRecord]:
        """Declared radicals plus bare entries for every referenced identifier."""
        by_id = {r.radical: r for r in self.radicals}
        for rec in self.kanji:
            for rad in rec.radicals:
                if rad not in by_id:
                    by_id[rad] = RadicalRecord(radical=rad)
        return [by_id[k] for k in sorted(by_id)]


def record_from_dict(item: Dict[str, Any]) -> KanjiRecord:
    frequency = item.get('frequency')
    if frequency is None:
        frequency = item.get('frequencyClass')
    if isinstance(frequency, str):
        # a class name stands for the most frequent rank of its band
        frequency = FREQUENCY_BANDS[frequency][0]
    return KanjiRecord(
        character=item['character'],
        meanings=tuple(item.get('meanings') or ()),
        on_readings=tuple(item.get('onReadings') or ()),
        kun_readings=tuple(item.get('kunReadings') or ()),
        stroke_count=int(item['strokeCount']),
        grade=item.get('grade'),
        exam_level=item.get('examLevel'),
        frequency=frequency,
        radicals=tuple(item.get('radicals') or ()),
        mnemonic=item.get('mnemonic'),
        examples=tuple(item.get('examples') or ()),
    )


def _radical_from_dict(item: Dict[str, Any]) -> RadicalRecord:
    return RadicalRecord(
        radical=item['radical'],
        name=item.get('name') or '',
        stroke_count=item.get('strokeCount'),
        meaning=item.get('meaning') or '',
        position=item.get('position') or '',
    )


def parse_dataset(data: Any) -> KanjiDataset:
    """Validate decoded JSON and convert it to a `KanjiDataset`.

    Raises `InitializationError` listing the first schema violations.
    """
    if isinstance(data, list):
        validator = Draft7Validator(LIST_DATASET_SCHEMA)
    elif isinstance(data, dict):
        validator = Draft7Validator(OBJECT_DATASET_SCHEMA)
    else:
        raise InitializationError("Invalid kanji dataset: top level must be a list or an object")
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    if errors:
        detail = "; ".join(
            f"{'/'.join(str(p) for p in e.absolute_path) or '<root>'}: {e.message}" for e in errors[:5]
        )
        raise InitializationError(f"Invalid kanji dataset: {detail}")

    if isinstance(data, list):
        items, radical_items, version = data, [], DEFAULT_VERSION
    else:
        items = data['kanji']
        radical_items = data.get('radicals') or []
        version = data.get('version') or DEFAULT_VERSION

    seen = set()
    records: List[KanjiRecord] = []
    for item in items:
        ch = item['character']
        if ch in seen:
            raise InitializationError(f"Invalid kanji dataset: duplicate character {ch!r}")
        seen.add(ch)
        records.append(record_from_dict(item))
    radicals = [_radical_from_dict(r) for r in radical_items]
    return KanjiDataset(kanji=records, radicals=radicals, version=version)


def load_dataset(path: str | Path) -> KanjiDataset:
    """Load the bundled dataset JSON. Missing or corrupt files raise `InitializationError`."""
    p = Path(path)
    if not p.exists():
        raise InitializationError(f"Kanji dataset not found: {p}")
    try:
        with p.open('r', encoding='utf8') as fh:
            data = json.load(fh)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InitializationError(f"Kanji dataset unreadable: {p}: {e}") from e
    dataset = parse_dataset(data)
    logger.debug("Loaded %d kanji / %d radicals from %s", len(dataset.kanji), len(dataset.radicals), p)
    return dataset


def save_dataset(path: str | Path, dataset: KanjiDataset) -> None:
    """Serialize a dataset to JSON in the object form, written atomically."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    out = {
        'version': dataset.version,
        'kanji': [r.to_dict() for r in dataset.kanji],
        'radicals': [
            {
                'radical': r.radical,
                'name': r.name,
                'strokeCount': r.stroke_count,
                'meaning': r.meaning,
                'position': r.position,
            }
            for r in dataset.radicals
        ],
    }
    tmp = p.with_suffix(p.suffix + '.tmp')
    try:
        with tmp.open('w', encoding='utf8') as fh:
            json.dump(out, fh, ensure_ascii=False, indent=2)
        os.replace(str(tmp), str(p))
    finally:
        if tmp.exists():
            tmp.unlink()


def _local_name(tag: str) -> str:
    """Return XML local name without namespace."""
    if tag is None:
        return ""
    return tag.split('}')[-1]


def _int_or_none(text: Optional[str]) -> Optional[int]:
    try:
        return int((text or '').strip())
    except ValueError:
        return None


def parse_kanjidic2(xml_gz_path) -> List[KanjiRecord]:
    """Parse a Kanjidic2 XML (optionally gzipped) and return KanjiRecord list.

        This uses a streaming `iterparse` so it can handle large files.
        The function extracts:
            - literal character
            - readings (r_type attribute: ja_on / ja_kun)
            - English meanings (entries carrying an m_lang attribute are skipped)
            - misc metadata: stroke count, grade, frequency rank, jlpt
            - classical radical number as the radical identifier

        Kanjidic2 JLPT levels use the pre-2010 1-4 scale; they are kept as-is.
    """
    if str(xml_gz_path).lower().endswith('.gz'):
        fp = gzip.open(xml_gz_path, 'rb')
    else:
        fp = open(xml_gz_path, 'rb')

    records: List[KanjiRecord] = []
    try:
        for event, elem in ET.iterparse(fp, events=('end',)):
            if _local_name(elem.tag) != 'character':
                continue

            literal = None
            for child in elem:
                if _local_name(child.tag) == 'literal' and child.text:
                    literal = child.text.strip()
                    break
            if not literal:
                elem.clear()
                continue

            onyomi: List[str] = []
            kunyomi: List[str] = []
            meanings: List[str] = []
            radicals: List[str] = []
            stroke_count = None
            grade = jlpt = freq = None

            for sub in elem.iter():
                tag = _local_name(sub.tag)
                text = (sub.text or '').strip()
                if tag == 'reading' and text:
                    rtype = sub.get('r_type')
                    if rtype == 'ja_on':
                        onyomi.append(text)
                    elif rtype == 'ja_kun':
                        kunyomi.append(text)
                elif tag == 'meaning' and text and sub.get('m_lang') is None:
                    meanings.append(text)
                elif tag == 'rad_value' and sub.get('rad_type') == 'classical' and text:
                    radicals.append(text)
                elif tag == 'stroke_count' and stroke_count is None:
                    stroke_count = _int_or_none(text)
                elif tag == 'grade':
                    grade = _int_or_none(text)
                elif tag == 'freq':
                    freq = _int_or_none(text)
                elif tag == 'jlpt':
                    jlpt = _int_or_none(text)

            if stroke_count:
                records.append(KanjiRecord(
                    character=literal, meanings=tuple(meanings), on_readings=tuple(onyomi),
                    kun_readings=tuple(kunyomi), stroke_count=stroke_count, grade=grade,
                    exam_level=jlpt, frequency=freq, radicals=tuple(radicals),
                ))
            else:
                logger.debug('parse_kanjidic2: skipping %s without stroke count', literal)

            # clear parsed element from tree to save memory
            elem.clear()
    finally:
        fp.close()

    return records


def merge_kanji_records(base: Sequence[KanjiRecord], extra: Sequence[KanjiRecord]) -> List[KanjiRecord]:
    """Merge two record lists keyed by character.

    Base records win for scalar fields; list fields are unioned preserving
    order; missing scalars are filled from `extra`. Characters only present in
    `extra` are carried over. Output is in canonical (stroke count, code point) order.
    """
    merged: Dict[str, KanjiRecord] = {r.character: r for r in base}

    def _union(a, b):
        return tuple(dict.fromkeys(tuple(a) + tuple(b)))

    for r in extra:
        target = merged.get(r.character)
        if target is None:
            merged[r.character] = r
            continue
        merged[r.character] = KanjiRecord(
            character=target.character,
            meanings=_union(target.meanings, r.meanings),
            on_readings=_union(target.on_readings, r.on_readings),
            kun_readings=_union(target.kun_readings, r.kun_readings),
            stroke_count=target.stroke_count or r.stroke_count,
            grade=target.grade if target.grade is not None else r.grade,
            exam_level=target.exam_level if target.exam_level is not None else r.exam_level,
            frequency=target.frequency if target.frequency is not None else r.frequency,
            radicals=_union(target.radicals, r.radicals),
            mnemonic=target.mnemonic or r.mnemonic,
            examples=_union(target.examples, r.examples),
        )

    return sorted(merged.values(), key=KanjiRecord.sort_key)


def compute_dataset_stats(dataset: KanjiDataset) -> dict:
    """Coverage statistics for optional fields."""
    total = len(dataset.kanji)

    def _pct(n: int) -> float:
        return (n / total * 100) if total else 0.0

    with_level = sum(1 for r in dataset.kanji if r.exam_level is not None)
    with_freq = sum(1 for r in dataset.kanji if r.frequency is not None)
    return {
        'total': total,
        'radicals': len(dataset.all_radicals()),
        'exam_level_count': with_level,
        'exam_level_pct': _pct(with_level),
        'frequency_count': with_freq,
        'frequency_pct': _pct(with_freq),
    }


__all__ = [
    'KanjiDataset', 'load_dataset', 'save_dataset', 'parse_dataset', 'parse_kanjidic2',
    'merge_kanji_records', 'compute_dataset_stats', 'record_from_dict',
]


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Build a kanji dataset JSON from Kanjidic2.')
    parser.add_argument('--kanjidic', default='data/kanjidic2.xml.gz', help='Path to kanjidic2 xml (or .gz)')
    parser.add_argument('--base', default=None, help='Optional existing dataset JSON whose entries take precedence')
    parser.add_argument('--out', default='KanjiKnowledge/data/kanji_seed.json', help='Output JSON file')
    parser.add_argument('--version', default=DEFAULT_VERSION, help='Catalog version string to embed')
    parser.add_argument('--stats', action='store_true', help='Only compute and print stats')
    args = parser.parse_args()

    print('Parsing Kanjidic2 from', args.kanjidic)
    kd = parse_kanjidic2(args.kanjidic)
    print('Parsed', len(kd), 'KD records')

    radicals: List[RadicalRecord] = []
    if args.base:
        base = load_dataset(args.base)
        print('Loaded', len(base.kanji), 'base records from', args.base)
        merged = merge_kanji_records(base.kanji, kd)
        radicals = base.radicals
    else:
        merged = sorted(kd, key=KanjiRecord.sort_key)
    dataset = KanjiDataset(kanji=merged, radicals=radicals, version=args.version)
    print('Merged records:', len(merged))

    if args.stats:
        print(json.dumps(compute_dataset_stats(dataset), indent=2, ensure_ascii=False))
    else:
        print('Saving dataset JSON to', args.out)
        save_dataset(args.out, dataset)
        print('Done')
