"""Tests for the draft lifecycle and the sync protocol."""
from typing import Any, Dict, List, Optional

import pytest

from fieldsync.forms.schema import extract_fields, options_for_field
from fieldsync.offline.cache import OfflineCache
from fieldsync.offline.drafts import DraftManager, DraftState
from fieldsync.offline.errors import LocationIncompleteError, NetworkError, ServerError, SyncError
from fieldsync.offline.kv_store import InMemoryKeyValueStore
from fieldsync.offline.models import DraftStatus
from fieldsync.offline.sync import SubmissionSync

from tests.conftest import MAPPING_JSON, SCHEMA_JSON

FULL_LOCATION = {"prov_name": "Cebu", "city_name": "Cebu City", "brgy_name": "Lahug"}


class FakeSubmissionsApi:
    """Stands in for the remote submissions endpoints."""

    def __init__(self, fail_on: Optional[str] = None, submit_status: str = "submitted"):
        self.fail_on = fail_on
        self.submit_status = submit_status
        self.calls: List[tuple] = []
        self.next_id = 100

    async def create(self, form_type_id, year, **kwargs) -> Dict[str, Any]:
        self.calls.append(("create", form_type_id, year))
        if self.fail_on == "create":
            raise NetworkError("offline")
        submission_id = self.next_id
        self.next_id += 1
        return {"submission": {"id": submission_id, "status": "draft"}, "mapping_json": {}}

    async def save_answers(self, submission_id, *, answers, snapshots=None, location=None, mode="draft"):
        self.calls.append(("save_answers", submission_id, mode, dict(answers)))
        if self.fail_on == "save_answers":
            raise NetworkError("offline")
        return {"updated": len(answers), "rejected": []}

    async def submit(self, submission_id) -> Dict[str, Any]:
        self.calls.append(("submit", submission_id))
        if self.fail_on == "submit":
            raise ServerError("boom", status=500)
        return {"id": submission_id, "status": self.submit_status}

    @property
    def steps(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def cache() -> OfflineCache:
    return OfflineCache(InMemoryKeyValueStore())


@pytest.fixture
def api() -> FakeSubmissionsApi:
    return FakeSubmissionsApi()


@pytest.fixture
def manager(cache, api) -> DraftManager:
    return DraftManager(cache, SubmissionSync(api, cache))


def new_draft(manager: DraftManager, location=None):
    return manager.new_draft(3, 2024, mapping_id=1, schema_json=SCHEMA_JSON, location=location)


# =============================================================================
# Local editing
# =============================================================================

async def test_new_draft_is_unsaved_with_seeded_snapshots(manager):
    draft = new_draft(manager)
    assert draft.draft_id is None
    assert set(draft.snapshots) == {"respondent", "household_size", "tenure", "has_water"}
    assert draft.snapshots["tenure"]["option_key"] == "tenure"
    assert await manager.state_of(draft) == DraftState.NEW


async def test_save_requires_province_and_city(manager, cache):
    draft = new_draft(manager, {"prov_name": "Cebu"})
    with pytest.raises(LocationIncompleteError) as exc_info:
        await manager.save(draft)
    assert exc_info.value.missing == ["city_name"]
    assert draft.draft_id is None
    assert await cache.list_drafts() == []


async def test_save_assigns_id_once(manager):
    draft = new_draft(manager, {"prov_name": "Cebu", "city_name": "Cebu City"})
    await manager.save(draft)
    draft_id = draft.draft_id
    assert draft_id.startswith("draft_")

    await manager.save(draft)
    assert draft.draft_id == draft_id
    assert [d.draft_id for d in await manager.list()] == [draft_id]
    assert await manager.state_of(draft) == DraftState.LOCAL_DIRTY


async def test_set_answer_records_snapshot(manager):
    draft = new_draft(manager)
    tenure = next(f for f in extract_fields(SCHEMA_JSON) if f.key == "tenure")
    record = manager.set_answer(draft, tenure, "rent", options_for_field(tenure, MAPPING_JSON))

    assert record.snapshot.option_label == "Rented"
    assert draft.answers["tenure"] == "rent"
    assert draft.snapshots["tenure"] == {
        "label": "Tenure",
        "type": "select",
        "option_key": "rent",
        "option_label": "Rented",
    }


async def test_set_answer_keeps_oversized_number_as_text(manager):
    draft = new_draft(manager)
    size = next(f for f in extract_fields(SCHEMA_JSON) if f.key == "household_size")
    record = manager.set_answer(draft, size, 10 ** 400)

    assert record.to_slots().value_text == str(10 ** 400)
    assert record.to_slots().value_number is None
    assert draft.answers["household_size"] == 10 ** 400


async def test_set_location_merges(manager):
    draft = new_draft(manager, {"prov_name": "Cebu"})
    manager.set_location(draft, city_name=" Cebu City ", unknown="x")
    assert draft.location.prov_name == "Cebu"
    assert draft.location.city_name == "Cebu City"


# =============================================================================
# Sync and submit
# =============================================================================

async def test_sync_keeps_draft_clean(manager, api):
    draft = new_draft(manager, FULL_LOCATION)
    draft.answers["respondent"] = "Ana"
    submission_id = await manager.sync(draft)

    assert submission_id == 100
    assert api.calls == [("create", 3, 2024), ("save_answers", 100, "draft", {"respondent": "Ana"})]
    stored = await manager.get(draft.draft_id)
    assert stored.server_submission_id == 100
    assert stored.dirty is False
    assert await manager.state_of(draft) == DraftState.LOCAL_CLEAN

    await manager.sync(draft)
    assert api.steps.count("create") == 1


async def test_submit_checks_location_before_any_call(manager, api, cache):
    draft = new_draft(manager, {"prov_name": "Cebu", "city_name": "Cebu City"})
    await manager.save(draft)
    with pytest.raises(LocationIncompleteError) as exc_info:
        await manager.submit(draft)
    assert exc_info.value.missing == ["brgy_name"]
    assert api.calls == []
    assert await cache.get_draft(draft.draft_id) is not None


async def test_submit_deletes_draft_after_acknowledgement(manager, api, cache):
    draft = new_draft(manager, FULL_LOCATION)
    submission_id = await manager.submit(draft)

    assert submission_id == 100
    assert api.steps == ["create", "save_answers", "submit"]
    assert api.calls[1][2] == "submit"
    assert draft.status == DraftStatus.SUBMITTED
    assert await cache.list_drafts() == []
    assert await manager.state_of(draft) == DraftState.SYNCED


async def test_failed_submit_keeps_draft_and_server_id(cache):
    api = FakeSubmissionsApi(fail_on="submit")
    manager = DraftManager(cache, SubmissionSync(api, cache))
    draft = new_draft(manager, FULL_LOCATION)

    with pytest.raises(ServerError):
        await manager.submit(draft)

    stored = await cache.get_draft(draft.draft_id)
    assert stored is not None
    assert stored.server_submission_id == 100
    assert stored.status == DraftStatus.DRAFT

    api.fail_on = None
    assert await manager.submit(stored) == 100
    assert api.steps == ["create", "save_answers", "submit", "save_answers", "submit"]
    assert await cache.list_drafts() == []


async def test_unacknowledged_submit_keeps_draft(cache):
    api = FakeSubmissionsApi(submit_status="draft")
    manager = DraftManager(cache, SubmissionSync(api, cache))
    draft = new_draft(manager, FULL_LOCATION)

    with pytest.raises(SyncError):
        await manager.submit(draft)
    assert await cache.get_draft(draft.draft_id) is not None


async def test_create_failure_leaves_draft_untouched(cache):
    api = FakeSubmissionsApi(fail_on="create")
    manager = DraftManager(cache, SubmissionSync(api, cache))
    draft = new_draft(manager, FULL_LOCATION)

    with pytest.raises(NetworkError):
        await manager.submit(draft)
    stored = await cache.get_draft(draft.draft_id)
    assert stored.server_submission_id is None
    assert await manager.state_of(stored) == DraftState.LOCAL_DIRTY


async def test_submit_pending_reports_each_draft(manager, api, cache):
    complete = new_draft(manager, FULL_LOCATION)
    incomplete = new_draft(manager, {"prov_name": "Cebu", "city_name": "Cebu City"})
    await manager.save(complete)
    await manager.save(incomplete)

    outcomes = await manager.submit_pending()

    by_id = {o.draft_id: o for o in outcomes}
    assert by_id[complete.draft_id].ok
    assert by_id[complete.draft_id].submission_id == 100
    assert isinstance(by_id[incomplete.draft_id].error, LocationIncompleteError)
    assert [d.draft_id for d in await cache.list_drafts()] == [incomplete.draft_id]
