import pytest

from conftest import kanji_entry, write_dataset
from KanjiKnowledge import InvalidArgument
from KanjiKnowledge.services.text.text_processor import (
    HIRAGANA, KANJI, KATAKANA, OTHER, JapaneseTextProcessor, classify_char, extract_kanji,
)

SENTENCE = "今日は日本語を勉強します"


@pytest.fixture
def sun_engine(make_engine, tmp_path):
    path = write_dataset(tmp_path / "sun.json", [
        kanji_entry("日", ["day", "sun"], on=["ニチ"], kun=["ひ"], strokes=4, level=5),
    ])
    eng = make_engine(path, db_name="sun.db")
    eng.initialize()
    return eng


def test_classify_char():
    assert classify_char("日") == KANJI
    assert classify_char("は") == HIRAGANA
    assert classify_char("カ") == KATAKANA
    assert classify_char("A") == OTHER
    assert classify_char("。") == OTHER


def test_extract_kanji_keeps_duplicates_and_offsets():
    assert extract_kanji("日と日") == [("日", 0), ("日", 2)]
    assert extract_kanji("ひらがなだけ") == []


def test_analysis_against_tiny_catalog(sun_engine):
    result = sun_engine.analyze_text(SENTENCE)
    positions = [m.position for m in result.found_kanji if m.character == "日"]
    assert positions == [1, 3]
    sun = next(m for m in result.unique_kanji if m.character == "日")
    assert sun.times_seen == 0
    assert sun.is_new
    assert sun.resolved
    assert sun.meanings == ("day", "sun")
    # everything else is unresolved but still new
    others = [m for m in result.unique_kanji if m.character != "日"]
    assert others and all(m.is_new and not m.resolved and m.meanings == () for m in others)


def test_analysis_is_a_snapshot(sun_engine):
    before = sun_engine.analyze_text(SENTENCE)
    sun_engine.record_encounters({"日"})
    assert sun_engine.get_exposure("日").times_seen == 1
    # the earlier result is unchanged
    assert "日" in before.new_characters
    after = sun_engine.analyze_text(SENTENCE)
    sun = next(m for m in after.unique_kanji if m.character == "日")
    assert sun.times_seen == 1
    assert not sun.is_new
    assert "日" not in after.new_characters


def test_analysis_does_not_write(engine):
    engine.analyze_text(SENTENCE)
    assert engine.knowledge_stats().total_seen == 0


def test_partition_and_counts(engine):
    engine.record_encounters(["日"])
    text = "今日は日本語を勉強します。カタカナ"
    result = engine.analyze_text(text)
    stats = result.stats
    assert stats.total_characters == len(text)
    assert stats.kanji_count == len(result.found_kanji) == 7
    assert stats.unique_kanji_count == len(result.unique_kanji) == 6
    assert stats.new_kanji_count == len(result.new_kanji)
    assert stats.hiragana_count == 5
    assert stats.katakana_count == 4
    new = {m.character for m in result.new_kanji}
    known = {m.character for m in result.known_kanji}
    assert not new & known
    assert new | known == result.unique_characters
    assert known == {"日"}


def test_unique_sort_order(engine):
    engine.record_encounters(["人"])
    result = engine.analyze_text("鬱人猫本勉日")
    # new first by frequency rank (unknown last, then code point), then known
    assert [m.character for m in result.unique_kanji] == ["日", "本", "勉", "猫", "鬱", "人"]


def test_empty_and_kanji_free_text(engine):
    result = engine.analyze_text("")
    assert result.found_kanji == ()
    assert result.stats.total_characters == 0
    result = engine.analyze_text("ひらがなとカタカナ")
    assert result.unique_kanji == ()
    assert engine.score(result) == 1


def test_analyze_text_rejects_non_strings(engine):
    with pytest.raises(InvalidArgument):
        engine.analyze_text(None)


def test_commit_analysis_records_new_kanji_only(engine):
    engine.record_encounters(["日"])
    result = engine.analyze_text("日本人")
    records = engine.commit_analysis(result)
    assert sorted(r.character for r in records) == ["人", "本"]
    assert engine.get_exposure("日").times_seen == 1
    engine.commit_analysis(result, include_known=True)
    assert engine.get_exposure("日").times_seen == 2
    assert engine.commit_analysis(engine.analyze_text("かな")) == []


def test_extract_catalog_kanji(engine):
    assert engine.text.extract_catalog_kanji("猫と日本と日") == ["日", "本"]
    assert engine.text.extract_catalog_kanji("abc") == []


def test_is_japanese_text():
    assert JapaneseTextProcessor.is_japanese_text("これはペンです")
    assert JapaneseTextProcessor.is_japanese_text("漢")
    assert not JapaneseTextProcessor.is_japanese_text("hello world")
    assert not JapaneseTextProcessor.is_japanese_text("")


def test_clean_text_drops_noise_keeps_japanese():
    raw = "  今日は@@  日本語#を\r\n\n  勉強 |します！  "
    assert JapaneseTextProcessor.clean_text(raw) == "今日は 日本語を\n勉強 します！"


def test_clean_text_keeps_all_kana_and_kanji():
    text = "ひらがなカタカナ漢字"
    assert JapaneseTextProcessor.clean_text(text) == text


def test_uncatalogued_kanji_stay_new_after_commit(engine):
    first = engine.analyze_text("猫")
    engine.commit_analysis(first)
    assert engine.get_exposure("猫").times_seen == 1
    (cat,) = engine.analyze_text("猫").unique_kanji
    assert not cat.resolved
    assert cat.is_new
    assert cat.times_seen == 0
