"""Device SDK against the real application over an in-process transport."""
import pytest
from httpx import ASGITransport

from fieldsync.forms.schema import options_for_field
from fieldsync.main import app
from fieldsync.offline.api import AuthApi, FormLoader, FormsApi, SubmissionsApi, download_form
from fieldsync.offline.cache import OfflineCache
from fieldsync.offline.drafts import DraftManager
from fieldsync.offline.errors import AuthenticationError, LocationIncompleteError
from fieldsync.offline.gateway import RemoteGateway
from fieldsync.offline.kv_store import InMemoryKeyValueStore
from fieldsync.offline.sync import SubmissionSync
from fieldsync.offline.tokens import TokenStore

from tests.conftest import USER_PASSWORD


@pytest.fixture
async def device(user, form_catalogue):
    store = InMemoryKeyValueStore()
    cache = OfflineCache(store)
    tokens = TokenStore(store)
    gateway = RemoteGateway(
        tokens,
        "http://testserver/api",
        cache.get_or_create_device_id,
        transport=ASGITransport(app=app),
    )
    async with gateway:
        yield {"cache": cache, "tokens": tokens, "gateway": gateway}


async def test_login_download_answer_and_submit(device):
    cache, gateway = device["cache"], device["gateway"]

    user = await AuthApi(gateway, cache).login("enumerator@example.com", USER_PASSWORD)
    assert user["email"] == "enumerator@example.com"

    forms_api = FormsApi(gateway)
    assert await forms_api.fetch_form_years() == [2024]
    form_types = await forms_api.fetch_form_types(2024)
    assert [ft["id"] for ft in form_types] == [3]

    await download_form(cache, forms_api, 3, 2024, title=form_types[0]["name"])
    loaded = await FormLoader(cache, forms_api).load(3, 2024)
    assert loaded.offline is True

    submissions_api = SubmissionsApi(gateway)
    manager = DraftManager(cache, SubmissionSync(submissions_api, cache))
    draft = manager.new_draft(
        3,
        2024,
        mapping_id=loaded.mapping_id,
        schema_version_id=loaded.schema_version_id,
        schema_json=loaded.schema_json,
        location={"prov_name": "Cebu", "city_name": "Cebu City"},
    )
    values = {"respondent": "Ana", "household_size": 4, "tenure": "own", "has_water": False}
    for field in loaded.fields:
        manager.set_answer(draft, field, values[field.key], options_for_field(field, loaded.mapping_json))
    await manager.save(draft)

    with pytest.raises(LocationIncompleteError):
        await manager.submit(draft)

    manager.set_location(draft, brgy_name="Lahug")
    submission_id = await manager.submit(draft)
    assert await manager.list() == []

    detail = await submissions_api.get(submission_id)
    assert detail["submission"]["status"] == "submitted"
    assert detail["submission"]["brgy_name"] == "Lahug"
    assert detail["submission"]["schema_version_id"] == loaded.schema_version_id
    human = {a["field_key"]: a["value"] for a in detail["answers_human"]}
    assert human == {"has_water": "No", "household_size": 4, "respondent": "Ana", "tenure": "Owned"}

    mine = await submissions_api.list_mine(status="submitted")
    assert [row["id"] for row in mine["data"]] == [submission_id]


async def test_expired_access_token_is_refreshed(device):
    cache, tokens, gateway = device["cache"], device["tokens"], device["gateway"]
    await AuthApi(gateway, cache).login("enumerator@example.com", USER_PASSWORD)
    refresh_before = (await tokens.get()).refresh

    await tokens.save({"access_token": "expired"})
    me = await AuthApi(gateway).me()
    assert me["email"] == "enumerator@example.com"

    stored = await tokens.get()
    assert stored.access != "expired"
    assert stored.refresh is not None
    assert refresh_before is not None


async def test_wrong_password(device):
    with pytest.raises(AuthenticationError) as exc_info:
        await AuthApi(device["gateway"], device["cache"]).login("enumerator@example.com", "nope")
    assert exc_info.value.message == "Incorrect email or password"
    assert (await device["tokens"].get()).access is None
