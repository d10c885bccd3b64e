import json

import pytest

from shaheen_agent.models.schemas import RecordDraft
from shaheen_agent.storage.kv import FileKeyValueStore, InMemoryKeyValueStore
from shaheen_agent.storage.memory import MemoryStore, STORAGE_KEY


class BrokenWriteKV(InMemoryKeyValueStore):
    def set(self, key, value):
        raise OSError("disk full")


class BrokenReadKV(InMemoryKeyValueStore):
    def get(self, key):
        raise OSError("permission denied")


class FlakyReadKV(InMemoryKeyValueStore):
    """Reads fail while `broken` is set; writes always succeed."""

    broken = False

    def get(self, key):
        if self.broken:
            raise OSError("transient read error")
        return super().get(key)


@pytest.fixture
def store():
    return MemoryStore(InMemoryKeyValueStore())


def test_save_then_get_all_returns_record_first(store):
    store.save(RecordDraft(doc_type="عقد عمالة", user_input="عقد قديم"))
    rid = store.save(
        {
            "doc_type": "عقد إيجار سقالات",
            "user_input": "أريد إنشاء عقد إيجار جديد",
            "generated_content": "محتوى العقد المولد",
            "tags": ["عقد", "إيجار"],
        }
    )

    records = store.get_all()
    assert len(records) == 2
    first = records[0]
    assert first.id == rid and rid
    assert first.timestamp
    assert first.doc_type == "عقد إيجار سقالات"
    assert first.user_input == "أريد إنشاء عقد إيجار جديد"
    assert first.tags == ["عقد", "إيجار"]
    assert first.rating is None
    assert records[0].id != records[1].id


def test_generated_ids_are_unique(store):
    ids = {store.generate_id() for _ in range(500)}
    assert len(ids) == 500


def test_tags_deduplicated_and_capped(store):
    store.save(RecordDraft(doc_type="A", tags=["a", "b", "a", "c", "d", "e", "f", "g"]))
    assert store.get_all()[0].tags == ["a", "b", "c", "d", "e"]


def test_capacity_keeps_most_recent_newest_first():
    store = MemoryStore(InMemoryKeyValueStore(), max_conversations=100)
    for i in range(105):
        store.save(RecordDraft(doc_type="A", user_input=f"طلب {i}"))

    records = store.get_all()
    assert len(records) == 100
    assert [r.user_input for r in records] == [f"طلب {i}" for i in range(104, 4, -1)]


def test_get_all_empty_and_corrupt_storage():
    kv = InMemoryKeyValueStore()
    store = MemoryStore(kv)
    assert store.get_all() == []

    kv.set(STORAGE_KEY, "{not json")
    assert store.get_all() == []

    kv.set(STORAGE_KEY, json.dumps({"id": "x"}))
    assert store.get_all() == []

    kv.set(STORAGE_KEY, json.dumps([{"doc_type": "missing id"}]))
    assert store.get_all() == []


def test_unreadable_storage_degrades_to_empty():
    store = MemoryStore(BrokenReadKV())
    assert store.get_all() == []
    assert store.search("") == []
    assert store.get_stats().total_conversations == 0


def test_save_failure_returns_empty_id_and_changes_nothing():
    kv = BrokenWriteKV()
    kv._data[STORAGE_KEY] = "[]"
    store = MemoryStore(kv)

    assert store.save(RecordDraft(doc_type="A", user_input="x")) == ""
    assert store.get_all() == []


def test_mutations_abort_when_history_cannot_be_read():
    kv = FlakyReadKV()
    store = MemoryStore(kv)
    ids = [store.save(RecordDraft(doc_type="A", user_input=str(i))) for i in range(3)]
    persisted = kv._data[STORAGE_KEY]

    kv.broken = True
    assert store.save(RecordDraft(doc_type="A", user_input="new")) == ""
    store.update(ids[0], {"rating": 5})
    store.delete(ids[1])
    assert kv._data[STORAGE_KEY] == persisted

    kv.broken = False
    assert [r.user_input for r in store.get_all()] == ["2", "1", "0"]
    assert all(r.rating is None for r in store.get_all())


def test_mutations_leave_partly_invalid_history_untouched():
    kv = InMemoryKeyValueStore()
    store = MemoryStore(kv)
    store.save(RecordDraft(doc_type="A", user_input="valid"))
    records = json.loads(kv._data[STORAGE_KEY])
    records.append({"doc_type": "B", "user_input": "no id or timestamp"})
    corrupt = json.dumps(records, ensure_ascii=False)
    kv.set(STORAGE_KEY, corrupt)

    assert store.save(RecordDraft(doc_type="A", user_input="new")) == ""
    store.update(records[0]["id"], {"rating": 4})
    store.delete(records[0]["id"])
    assert kv._data[STORAGE_KEY] == corrupt


def test_search_matches_input_doc_type_and_tags(store):
    store.save(RecordDraft(doc_type="محضر تسليم واستلام", user_input="تسليم معدات", tags=["معدات"]))
    store.save(RecordDraft(doc_type="عقد عمالة", user_input="عامل بناء", tags=["عامل"]))
    store.save(RecordDraft(doc_type="عقد إيجار سقالات", user_input="مشروع البناء الجديد"))

    hits = store.search("مشروع")
    assert [r.user_input for r in hits] == ["مشروع البناء الجديد"]

    assert [r.doc_type for r in store.search("عقد")] == ["عقد إيجار سقالات", "عقد عمالة"]
    assert [r.user_input for r in store.search("معدات")] == ["تسليم معدات"]


def test_search_tag_requires_whole_tag(store):
    store.save(RecordDraft(doc_type="A", user_input="x", tags=["Scaffold"]))
    assert len(store.search("scaffold")) == 1
    assert store.search("scaff") == []


def test_search_empty_query_matches_everything(store):
    store.save(RecordDraft(doc_type="A", user_input="one"))
    store.save(RecordDraft(doc_type="B", user_input="two"))
    assert [r.user_input for r in store.search("")] == ["two", "one"]


def test_extract_keywords_stop_words_and_short_tokens(store):
    assert store.extract_keywords("في من إلى على") == []
    assert store.extract_keywords("") == []
    assert store.extract_keywords("عقد في مشروع مع ab عقد") == ["عقد", "مشروع"]


def test_calculate_similarity_bounds(store):
    assert store.calculate_similarity([], "anything") == 0
    assert store.calculate_similarity(["x"], "") == 0
    score = store.calculate_similarity(["مشروع", "بناء", "عقد"], "مشروع البناء الجديد يحتاج عقد")
    assert 0 < score <= 1
    # two shared keywords over the larger (5-keyword) side
    assert score == pytest.approx(0.4)


def test_get_similar_filters_ranks_and_limits(store):
    store.save(RecordDraft(doc_type="X", user_input="مشروع بناء برج"))
    store.save(RecordDraft(doc_type="X", user_input="عقد توريد مواد"))
    store.save(RecordDraft(doc_type="Y", user_input="مشروع بناء برج"))
    store.save(RecordDraft(doc_type="X", user_input="مشروع بناء فيلا سكنية"))

    results = store.get_similar("X", "مشروع بناء برج", limit=2)
    assert len(results) == 2
    assert all(r.doc_type == "X" for r in results)
    assert [r.user_input for r in results] == ["مشروع بناء برج", "مشروع بناء فيلا سكنية"]
    assert results[0].similarity == pytest.approx(1.0)
    assert results[1].similarity == pytest.approx(0.5)

    everything = store.get_similar("X", "مشروع بناء برج", limit=10)
    scores = [r.similarity for r in everything]
    assert scores == sorted(scores, reverse=True)
    assert len(everything) == 3


def test_get_similar_ties_keep_newest_first(store):
    store.save(RecordDraft(doc_type="X", user_input="أول"))
    store.save(RecordDraft(doc_type="X", user_input="ثاني"))
    results = store.get_similar("X", "", 2)
    assert [r.user_input for r in results] == ["ثاني", "أول"]
    assert all(r.similarity == 0 for r in results)


def test_stats_empty(store):
    stats = store.get_stats()
    assert stats.model_dump() == {
        "total_conversations": 0,
        "doc_type_distribution": {},
        "average_rating": 0,
        "most_used_doc_type": "",
    }


def test_stats_distribution_and_average(store):
    store.save(RecordDraft(doc_type="A", rating=5))
    store.save(RecordDraft(doc_type="A", rating=4))
    store.save(RecordDraft(doc_type="B", rating=3))

    stats = store.get_stats()
    assert stats.total_conversations == 3
    assert stats.doc_type_distribution == {"A": 2, "B": 1}
    assert stats.average_rating == 4
    assert stats.most_used_doc_type == "A"


def test_stats_tie_goes_to_first_encountered(store):
    store.save(RecordDraft(doc_type="A"))
    store.save(RecordDraft(doc_type="B"))
    # aggregation walks newest first, so B is seen first
    assert store.get_stats().most_used_doc_type == "B"


def test_delete_removes_only_target(store):
    ids = [store.save(RecordDraft(doc_type="A", user_input=str(i))) for i in range(4)]
    store.delete(ids[1])
    assert [r.user_input for r in store.get_all()] == ["3", "2", "0"]

    store.delete("missing")
    assert len(store.get_all()) == 3


def test_update_merges_patch(store):
    rid = store.save(RecordDraft(doc_type="A", user_input="x"))
    before = store.get_all()[0]

    store.update(rid, {"rating": 5, "user_feedback": "ممتاز", "id": "hijack"})
    after = store.get_all()[0]
    assert after.rating == 5
    assert after.user_feedback == "ممتاز"
    assert after.id == before.id
    assert after.timestamp == before.timestamp
    assert after.user_input == "x"

    store.update("missing", {"rating": 1})
    assert store.get_all()[0].rating == 5


def test_update_with_invalid_rating_is_ignored(store):
    rid = store.save(RecordDraft(doc_type="A"))
    store.update(rid, {"rating": 9})
    assert store.get_all()[0].rating is None


def test_export_and_import(store):
    store.save(RecordDraft(doc_type="عقد عمالة", user_input="عامل"))
    dumped = store.export_all()
    assert "عقد عمالة" in dumped

    other = MemoryStore(InMemoryKeyValueStore())
    assert other.import_all(dumped) is True
    assert other.get_all() == store.get_all()


def test_import_rejects_bad_payload_without_touching_state(store):
    store.save(RecordDraft(doc_type="A", user_input="keep"))
    assert store.import_all('{"not": "a list"}') is False
    assert store.import_all("not json at all") is False
    assert store.import_all('[{"doc_type": "no id"}]') is False
    assert [r.user_input for r in store.get_all()] == ["keep"]


def test_import_truncates_to_capacity():
    source = MemoryStore(InMemoryKeyValueStore(), max_conversations=10)
    for i in range(10):
        source.save(RecordDraft(doc_type="A", user_input=str(i)))

    target = MemoryStore(InMemoryKeyValueStore(), max_conversations=3)
    assert target.import_all(source.export_all())
    assert [r.user_input for r in target.get_all()] == ["9", "8", "7"]


def test_clear(store):
    store.save(RecordDraft(doc_type="A"))
    store.clear()
    assert store.get_all() == []


def test_file_backend_persists_across_instances(tmp_path):
    first = MemoryStore(FileKeyValueStore(tmp_path))
    rid = first.save(RecordDraft(doc_type="إشعار تسليم", user_input="تسليم سقالات"))

    second = MemoryStore(FileKeyValueStore(tmp_path))
    records = second.get_all()
    assert [r.id for r in records] == [rid]
    assert (tmp_path / f"{STORAGE_KEY}.json").read_text(encoding="utf-8").count("تسليم سقالات") == 1
    assert list(tmp_path.glob("*.tmp")) == []
