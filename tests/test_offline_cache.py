"""Tests for the offline cache manager and its key/value stores."""
import json

import pytest

from fieldsync.offline.cache import DRAFTS_KEY, FORMS_KEY, OfflineCache, mapping_key
from fieldsync.offline.errors import StorageError
from fieldsync.offline.kv_store import InMemoryKeyValueStore, SqlKeyValueStore
from fieldsync.offline.models import DownloadedForm, Draft


class FailingStore(InMemoryKeyValueStore):
    """Reads fail for keys in ``broken_reads``; every write fails when ``broken_writes`` is set."""

    def __init__(self, initial=None, broken_reads=(), broken_writes=False):
        super().__init__(initial)
        self.broken_reads = set(broken_reads)
        self.broken_writes = broken_writes

    async def get(self, key):
        if key in self.broken_reads:
            raise StorageError("disk unavailable")
        return await super().get(key)

    async def set(self, key, value):
        if self.broken_writes:
            raise StorageError("disk full")
        await super().set(key, value)


def make_draft(draft_id="draft_1", **overrides) -> Draft:
    fields = {"draft_id": draft_id, "form_type_id": 3, "year": 2024, **overrides}
    return Draft(**fields)


# =============================================================================
# Drafts
# =============================================================================

async def test_save_draft_upserts_by_id():
    store = InMemoryKeyValueStore()
    cache = OfflineCache(store)

    await cache.save_draft(make_draft(answers={"q": 1}))
    await cache.save_draft(make_draft("draft_2"))
    await cache.save_draft(make_draft(answers={"q": 2}))

    drafts = await cache.list_drafts()
    assert [d.draft_id for d in drafts] == ["draft_1", "draft_2"]
    assert (await cache.get_draft("draft_1")).answers == {"q": 2}

    stored = json.loads(store.data[DRAFTS_KEY])
    assert stored[0]["draftId"] == "draft_1"
    assert stored[0]["formTypeId"] == 3
    assert "brgy_name" in stored[0]["location"]


async def test_save_draft_requires_id():
    cache = OfflineCache(InMemoryKeyValueStore())
    with pytest.raises(ValueError):
        await cache.save_draft(make_draft(None))


async def test_delete_draft():
    cache = OfflineCache(InMemoryKeyValueStore())
    await cache.save_draft(make_draft())
    await cache.delete_draft("draft_1")
    await cache.delete_draft("missing")
    assert await cache.list_drafts() == []
    assert await cache.get_draft("draft_1") is None


@pytest.mark.parametrize("raw", ["{not json", json.dumps({"draftId": "x"}), ""])
async def test_unreadable_drafts_collection_reads_empty(raw):
    cache = OfflineCache(InMemoryKeyValueStore({DRAFTS_KEY: raw}))
    assert await cache.list_drafts() == []


async def test_invalid_draft_entries_are_skipped():
    entries = [{"draftId": "ok", "formTypeId": 3, "year": 2024}, {"draftId": "bad"}, "junk"]
    cache = OfflineCache(InMemoryKeyValueStore({DRAFTS_KEY: json.dumps(entries)}))
    assert [d.draft_id for d in await cache.list_drafts()] == ["ok"]


async def test_read_failure_is_empty_but_write_failure_raises():
    cache = OfflineCache(FailingStore(broken_reads={DRAFTS_KEY}))
    assert await cache.list_drafts() == []

    cache = OfflineCache(FailingStore(broken_writes=True))
    with pytest.raises(StorageError):
        await cache.save_draft(make_draft())


# =============================================================================
# Downloaded forms
# =============================================================================

async def test_downloaded_forms_are_healed():
    entries = [
        {"formTypeId": "3", "year": "2024", "mappingJson": {"old": []}},
        {"formTypeId": 3, "year": 2024, "mappingJson": {"new": []}, "title": "Household"},
        {"formTypeId": "abc", "year": 2024},
        {"form_type_id": 5, "year": 2023.0, "schema_json": {"fields": []}},
    ]
    store = InMemoryKeyValueStore({FORMS_KEY: json.dumps(entries)})
    cache = OfflineCache(store)

    forms = await cache.list_downloaded_forms()
    assert [f.identity for f in forms] == [(3, 2024), (5, 2023)]
    assert forms[0].mapping_json == {"new": []}
    assert forms[0].title == "Household"

    stored = json.loads(store.data[FORMS_KEY])
    assert len(stored) == 2
    assert stored[0]["formTypeId"] == 3
    assert stored[1]["schemaJson"] == {"fields": []}
    assert forms[1].schema_definition == {"fields": []}

    form = await cache.get_downloaded_form("5", "2023")
    assert form is not None and form.form_type_id == 5


async def test_save_downloaded_form_replaces_same_identity():
    cache = OfflineCache(InMemoryKeyValueStore())
    await cache.save_downloaded_form(DownloadedForm(form_type_id=3, year=2024, title="v1"))
    await cache.save_downloaded_form(DownloadedForm(form_type_id=3, year=2024, title="v2"))
    await cache.save_downloaded_form(DownloadedForm(form_type_id=3, year=2025))

    forms = await cache.list_downloaded_forms()
    assert [(f.identity, f.title) for f in forms] == [((3, 2024), "v2"), ((3, 2025), None)]

    await cache.delete_downloaded_form(3, "2024")
    assert await cache.get_downloaded_form(3, 2024) is None


async def test_healing_tolerates_write_failure():
    entries = [{"formTypeId": "3", "year": "2024"}]
    cache = OfflineCache(FailingStore({FORMS_KEY: json.dumps(entries)}, broken_writes=True))
    forms = await cache.list_downloaded_forms()
    assert [f.identity for f in forms] == [(3, 2024)]


# =============================================================================
# Lookup caches
# =============================================================================

async def test_mapping_and_form_type_caches():
    store = InMemoryKeyValueStore()
    cache = OfflineCache(store)

    assert await cache.get_cached_mapping_json(3, 2024) is None
    await cache.cache_mapping_json(3, 2024, {"tenure": ["own"]})
    assert store.data[mapping_key(3, 2024)] == json.dumps({"tenure": ["own"]})
    assert await cache.get_cached_mapping_json(3, 2024) == {"tenure": ["own"]}
    await cache.clear_cached_mapping(3, 2024)
    assert await cache.get_cached_mapping_json(3, 2024) is None

    await cache.cache_form_types([{"id": 3}])
    assert await cache.get_cached_form_types() == [{"id": 3}]


async def test_device_id_is_stable():
    cache = OfflineCache(InMemoryKeyValueStore())
    first = await cache.get_or_create_device_id()
    assert first
    assert await cache.get_or_create_device_id() == first


# =============================================================================
# SQL key/value store
# =============================================================================

async def test_sql_store_roundtrip():
    store = SqlKeyValueStore("sqlite+pysqlite:///:memory:")
    try:
        assert await store.get("k") is None
        await store.set("k", "one")
        await store.set("k", "two")
        assert await store.get("k") == "two"
        await store.delete("k")
        assert await store.get("k") is None
    finally:
        store.close()


async def test_sql_store_persists_between_instances(tmp_path):
    url = f"sqlite+pysqlite:///{tmp_path / 'kv.db'}"
    first = SqlKeyValueStore(url)
    await OfflineCache(first).save_draft(make_draft(answers={"q": "yes"}))
    first.close()

    second = SqlKeyValueStore(url)
    try:
        draft = await OfflineCache(second).get_draft("draft_1")
        assert draft is not None
        assert draft.answers == {"q": "yes"}
    finally:
        second.close()


def test_sql_store_needs_a_target():
    with pytest.raises(ValueError):
        SqlKeyValueStore()
