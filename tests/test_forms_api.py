"""Tests for the form catalogue endpoints."""
from datetime import date

from sqlalchemy.orm import Session

from fieldsync.models import FormMapping, FormSchemaVersion, FormType

from tests.conftest import MAPPING_JSON, SCHEMA_JSON


async def test_form_years(authed_client, form_catalogue, db: Session):
    db.add(FormSchemaVersion(form_type_id=3, year=2023, version=1, status="archived", schema_json={"fields": []}))
    db.commit()
    response = await authed_client.get("/api/form-years")
    assert response.status_code == 200
    assert response.json() == {"years": [2024]}


async def test_form_types_for_year(authed_client, form_catalogue, db: Session):
    db.add(FormType(id=4, key="retired", name="Retired Form", is_active=False))
    db.commit()

    response = await authed_client.get("/api/form-types", params={"year": 2024})
    assert response.status_code == 200
    form_types = response.json()["formTypes"]
    assert [ft["id"] for ft in form_types] == [3]
    assert form_types[0]["name"] == "Household Survey"
    assert [v["id"] for v in form_types[0]["schema_versions"]] == [form_catalogue["schema_version_id"]]


async def test_form_types_default_year(authed_client, form_catalogue):
    response = await authed_client.get("/api/form-types")
    assert response.status_code == 200
    form_types = response.json()["formTypes"]
    expected = 1 if date.today().year == 2024 else 0
    assert len(form_types[0]["schema_versions"]) == expected


async def test_form_types_rejects_bad_year(authed_client, form_catalogue):
    response = await authed_client.get("/api/form-types", params={"year": 1800})
    assert response.status_code == 422


async def test_active_schema(authed_client, form_catalogue, db: Session):
    newer = FormSchemaVersion(form_type_id=3, year=2024, version=2, status="active",
                              schema_json={"fields": [{"key": "v2"}]})
    db.add(newer)
    db.commit()

    response = await authed_client.get("/api/form-types/3/active-schema", params={"year": 2024})
    assert response.status_code == 200
    version = response.json()["schemaVersion"]
    assert version["id"] == newer.id
    assert version["version"] == 2


async def test_active_schema_payload(authed_client, form_catalogue):
    response = await authed_client.get("/api/form-types/3/active-schema", params={"year": 2024})
    assert response.json()["schemaVersion"]["schema_json"] == SCHEMA_JSON


async def test_active_schema_not_found(authed_client, form_catalogue):
    response = await authed_client.get("/api/form-types/3/active-schema", params={"year": 2023})
    assert response.status_code == 404
    assert response.json()["detail"] == "Active schema not found"

    response = await authed_client.get("/api/form-types/3/active-schema")
    assert response.status_code == 422


async def test_latest_mapping(authed_client, form_catalogue, db: Session):
    response = await authed_client.get("/api/form-mappings", params={"form_type_id": 3, "year": 2024})
    assert response.status_code == 200
    assert response.json()["mapping"]["mapping_json"] == MAPPING_JSON

    newer = FormMapping(form_type_id=3, year=2024, mapping_json={"tenure": ["own"]})
    db.add(newer)
    db.commit()
    mapping = (await authed_client.get("/api/form-mappings", params={"form_type_id": 3, "year": 2024})).json()["mapping"]
    assert mapping["id"] == newer.id
    assert mapping["mapping_json"] == {"tenure": ["own"]}


async def test_mapping_errors(authed_client, form_catalogue):
    response = await authed_client.get("/api/form-mappings", params={"form_type_id": 3, "year": 2023})
    assert response.status_code == 404
    assert response.json()["detail"] == "Mapping not found"

    response = await authed_client.get("/api/form-mappings", params={"year": 2024})
    assert response.status_code == 422


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["ok"] is True
