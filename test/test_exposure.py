from concurrent.futures import ThreadPoolExecutor

import pytest

from KanjiKnowledge import InvalidArgument
from KanjiKnowledge.core.models import MASTERY_LEARNING, MASTERY_MASTERED, MASTERY_SEEN


def test_absent_record_means_unseen(engine):
    assert engine.get_exposure("日") is None
    assert engine.exposure.times_seen(["日"]) == {"日": 0}


def test_record_encounter_increments_by_one(engine):
    first = engine.exposure.record_encounter("日")
    assert first.times_seen == 1
    assert first.first_encountered == first.last_seen
    second = engine.exposure.record_encounter("日")
    assert second.times_seen == 2
    assert second.first_encountered == first.first_encountered
    assert engine.get_exposure("日").times_seen == 2


def test_record_encounters_counts_duplicates_once(engine):
    records = engine.record_encounters(["本", "日", "日"])
    assert [(r.character, r.times_seen) for r in records] == [("日", 1), ("本", 1)]


def test_record_encounters_accepts_uncatalogued_kanji(engine):
    (rec,) = engine.record_encounters(["猫"])
    assert rec.times_seen == 1


def test_record_encounters_rejects_empty_set(engine):
    with pytest.raises(InvalidArgument):
        engine.record_encounters([])


@pytest.mark.parametrize("bad", ["", "日本", None, 3])
def test_record_encounters_rejects_non_characters(engine, bad):
    with pytest.raises(InvalidArgument):
        engine.record_encounters([bad])
    # nothing from the failed call was committed
    assert engine.exposure.knowledge_stats().total_seen == 0


def test_concurrent_encounters_are_not_lost(engine):
    with ThreadPoolExecutor(max_workers=2) as pool:
        list(pool.map(engine.exposure.record_encounter, ["学", "学"]))
    assert engine.get_exposure("学").times_seen == 2


def test_many_concurrent_batches(engine):
    batches = [["日", "本"], ["日"], ["本", "人"], ["日", "人", "本"]] * 5
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(engine.record_encounters, batches))
    seen = engine.exposure.times_seen(["日", "本", "人"])
    assert seen == {"日": 15, "本": 15, "人": 10}


def test_record_answer_and_mastery(engine):
    rec = engine.record_answer("日", correct=False)
    assert (rec.times_seen, rec.times_correct, rec.times_incorrect) == (1, 0, 1)
    assert rec.mastery_level == MASTERY_SEEN
    rec = engine.record_answer("日", correct=True)
    assert rec.mastery_level == MASTERY_LEARNING
    for _ in range(6):
        rec = engine.record_answer("日", correct=True)
    # 7 correct out of 8
    assert rec.times_correct == 7
    assert rec.mastery_level == MASTERY_MASTERED


def test_knowledge_stats(engine):
    assert engine.knowledge_stats().total_seen == 0
    for _ in range(3):
        engine.record_answer("日", correct=True)
    engine.record_encounters(["本"])
    stats = engine.knowledge_stats()
    assert stats.total_seen == 2
    assert stats.total_mastered == 1
    assert stats.average_accuracy == pytest.approx(0.5)


def test_open_detail_records_encounter(engine):
    entry = engine.open_detail("本")
    assert entry.character == "本"
    assert entry.times_seen == 1
    assert engine.open_detail("本", record=False).times_seen == 1
    assert engine.open_detail("猫") is None
    assert engine.get_exposure("猫") is None


def test_large_batch_returns_every_record(engine):
    chars = [chr(0x4E00 + i) for i in range(1200)]
    records = engine.record_encounters(chars)
    assert [r.character for r in records] == chars
    assert all(r.times_seen == 1 for r in records)
