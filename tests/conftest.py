"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, tables created per test
- A user, a seeded form catalogue and JWT bearer headers
- HTTPX AsyncClient against the FastAPI app
"""
import os
from typing import AsyncGenerator, Dict, Generator

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["ENVIRONMENT"] = "test"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from fieldsync.core.database import Base, SessionLocal, engine
from fieldsync.core.security import create_access_token, get_password_hash
from fieldsync.main import app
from fieldsync.models import FormMapping, FormSchemaVersion, FormType, User
from fieldsync.repositories.user_repository import UserRepository

USER_PASSWORD = "secret123"

FORM_TYPE_ID = 3
FORM_YEAR = 2024

SCHEMA_JSON = {
    "fields": [
        {"key": "respondent", "label": "Respondent name", "type": "text", "required": True},
        {"key": "household_size", "label": "Household size", "type": "number"},
        {"key": "tenure", "label": "Tenure", "type": "select", "option_key": "tenure"},
        {"key": "has_water", "label": "Piped water", "type": "bool"},
    ]
}

MAPPING_JSON = {
    "respondent": [],
    "household_size": [],
    "tenure": [{"key": "own", "label": "Owned"}, {"key": "rent", "label": "Rented"}],
    "has_water": [],
}


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def user(db: Session) -> User:
    return UserRepository(db).create(
        email="enumerator@example.com",
        hashed_password=get_password_hash(USER_PASSWORD),
        full_name="Field Enumerator",
    )


@pytest.fixture
def form_catalogue(db: Session) -> Dict[str, int]:
    """Form type 3 with an active 2024 schema and mapping."""
    form_type = FormType(id=FORM_TYPE_ID, key="household", name="Household Survey", sector_key="social")
    db.add(form_type)
    db.flush()
    version = FormSchemaVersion(form_type_id=FORM_TYPE_ID, year=FORM_YEAR, version=1,
                                status="active", schema_json=SCHEMA_JSON)
    mapping = FormMapping(form_type_id=FORM_TYPE_ID, year=FORM_YEAR, mapping_json=MAPPING_JSON)
    db.add_all([version, mapping])
    db.commit()
    return {"form_type_id": FORM_TYPE_ID, "schema_version_id": version.id, "mapping_id": mapping.id}


# =============================================================================
# Auth
# =============================================================================

@pytest.fixture
def token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "role": user.role.value})


@pytest.fixture
def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# HTTP clients
# =============================================================================

@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
async def authed_client(client: AsyncClient, auth_headers: Dict[str, str]) -> AsyncClient:
    client.headers.update(auth_headers)
    return client
