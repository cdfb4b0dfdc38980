import pytest

from KanjiKnowledge import InvalidArgument


def test_query_matches_character_only(engine):
    res = engine.search(query="日", limit=1, offset=0)
    assert res.total_count == 1
    assert [e.character for e in res.results] == ["日"]


def test_query_matches_meaning_case_insensitively(engine):
    assert [e.character for e in engine.search(query="depression").results] == ["鬱"]
    assert [e.character for e in engine.search(query="BOOK").results] == ["本"]


def test_query_matches_readings(engine):
    assert [e.character for e in engine.search(query="ガク").results] == ["学"]
    assert [e.character for e in engine.search(query="ひと").results] == ["人"]


def test_filters_are_anded(engine):
    res = engine.search(exam_level=5, stroke_count=4)
    assert [e.character for e in res.results] == ["日"]
    assert engine.search(query="book", exam_level=1).total_count == 0


def test_frequency_class_filter(engine):
    assert [e.character for e in engine.query.get_by_frequency_class("very common").results] == ["人", "日", "本"]
    assert [e.character for e in engine.search(frequency_class="common").results] == ["学"]
    assert [e.character for e in engine.search(frequency_class="uncommon").results] == ["勉"]
    # no rank counts as rare
    assert [e.character for e in engine.search(frequency_class="rare").results] == ["鬱"]


def test_get_by_exam_level(engine):
    res = engine.query.get_by_exam_level(5)
    assert res.total_count == 4
    assert [e.character for e in res.results] == ["人", "日", "本", "学"]


def test_pagination_partitions_matches(engine):
    full = engine.search(limit=100)
    pages = []
    for offset in range(0, full.total_count, 2):
        page = engine.search(limit=2, offset=offset)
        assert page.total_count == full.total_count
        pages.extend(e.character for e in page.results)
    assert pages == [e.character for e in full.results]
    assert engine.search(limit=2, offset=100).results == []


def test_results_carry_times_seen(engine):
    engine.record_encounters(["日"])
    engine.record_encounters(["日"])
    by_char = {e.character: e.times_seen for e in engine.search(exam_level=5).results}
    assert by_char["日"] == 2
    assert by_char["本"] == 0


@pytest.mark.parametrize("kwargs", [
    {"limit": 0},
    {"limit": -1},
    {"offset": -1},
    {"exam_level": 6},
    {"stroke_count": 0},
    {"frequency_class": "legendary"},
])
def test_invalid_arguments(engine, kwargs):
    with pytest.raises(InvalidArgument):
        engine.search(**kwargs)


def test_stats_match_catalog(engine):
    stats = engine.get_stats()
    assert stats.total_kanji == len(engine.catalog.get_all())
    assert stats.catalog_version == "test-1"
    assert stats.total_radicals == len(engine.catalog.get_radicals())
    assert stats.size.endswith(" KB")
    assert stats.last_updated is not None
