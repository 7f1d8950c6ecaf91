"""Typed wrappers over the remote endpoints, plus form download and loading."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from fieldsync.forms.location import LOCATION_FIELDS
from fieldsync.forms.schema import FieldDescriptor, extract_fields, normalize_json
from fieldsync.offline.cache import OfflineCache
from fieldsync.offline.errors import FormNotAvailableError, NetworkError, NotFoundError
from fieldsync.offline.gateway import RemoteGateway
from fieldsync.offline.models import DownloadedForm, to_int

logger = logging.getLogger(__name__)

MIN_YEAR, MAX_YEAR = 1900, 3000


def to_year(value: Any) -> Optional[int]:
    year = to_int(value)
    if year is None or year < MIN_YEAR or year > MAX_YEAR:
        return None
    return year


def _require_ids(form_type_id: Any, year: Any) -> tuple:
    form_type = to_int(form_type_id)
    if form_type is None or form_type <= 0:
        raise ValueError("form_type_id is required")
    checked_year = to_year(year)
    if checked_year is None:
        raise ValueError("year is required")
    return form_type, checked_year


def _location_body(location: Any) -> Dict[str, Optional[str]]:
    if location is None:
        return {}
    if isinstance(location, Mapping):
        return {key: location.get(key) for key in LOCATION_FIELDS}
    return {key: getattr(location, key, None) for key in LOCATION_FIELDS}


class AuthApi:
    """Login and session endpoints."""

    def __init__(self, gateway: RemoteGateway, cache: Optional[OfflineCache] = None):
        self.gateway = gateway
        self.cache = cache

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Log in, store the tokens and return the user."""
        body: Dict[str, Any] = {"email": email, "password": password}
        if self.cache is not None:
            body["device_id"] = await self.cache.get_or_create_device_id()
        payload = await self.gateway.request("POST", "/auth/login", json=body, auth=False)
        await self.gateway.tokens.save(payload)
        return payload.get("user", payload)

    async def me(self) -> Dict[str, Any]:
        payload = await self.gateway.request("GET", "/auth/me")
        return payload.get("user", payload)

    async def logout(self) -> None:
        await self.gateway.tokens.clear()


class SubmissionsApi:
    """Submission endpoints."""

    def __init__(self, gateway: RemoteGateway):
        self.gateway = gateway

    async def create(
        self,
        form_type_id: int,
        year: int,
        *,
        mapping_id: Optional[int] = None,
        schema_version_id: Optional[int] = None,
        source: str = "mobile",
        location: Any = None,
    ) -> Dict[str, Any]:
        """Create a server submission; returns ``{submission, mapping_json}``."""
        body = {
            "form_type_id": int(form_type_id),
            "year": int(year),
            "mapping_id": mapping_id,
            "schema_version_id": schema_version_id,
            "source": source,
            **_location_body(location),
        }
        return await self.gateway.request("POST", "/submissions", json=body)

    async def save_answers(
        self,
        submission_id: int,
        *,
        answers: Mapping[str, Any],
        snapshots: Optional[Mapping[str, Any]] = None,
        location: Any = None,
        mode: str = "draft",
    ) -> Dict[str, Any]:
        """Upsert the full answer set; returns ``{updated, rejected}``."""
        body = {
            "mode": mode,
            "answers": dict(answers),
            "snapshots": dict(snapshots or {}),
            **_location_body(location),
        }
        return await self.gateway.request("PUT", f"/submissions/{submission_id}/answers", json=body)

    async def submit(self, submission_id: int) -> Dict[str, Any]:
        return await self.gateway.request("POST", f"/submissions/{submission_id}/submit")

    async def get(self, submission_id: int) -> Dict[str, Any]:
        return await self.gateway.request("GET", f"/submissions/{submission_id}")

    async def list(self, **filters: Any) -> Dict[str, Any]:
        return await self.gateway.request("GET", "/submissions", params=filters)

    async def list_mine(self, **filters: Any) -> Dict[str, Any]:
        return await self.gateway.request("GET", "/my-submissions", params=filters)


class FormsApi:
    """Form catalogue endpoints."""

    def __init__(self, gateway: RemoteGateway):
        self.gateway = gateway

    async def fetch_form_years(self) -> List[int]:
        payload = await self.gateway.request("GET", "/form-years")
        years = payload.get("years") if isinstance(payload, dict) else None
        return [y for y in (to_year(v) for v in (years or [])) if y is not None]

    async def fetch_form_types(self, year: Any = None) -> List[Dict[str, Any]]:
        params = {"year": to_year(year)}
        payload = await self.gateway.request("GET", "/form-types", params=params)
        form_types = payload.get("formTypes") if isinstance(payload, dict) else payload
        return list(form_types) if isinstance(form_types, list) else []

    async def fetch_form_mapping(self, form_type_id: Any, year: Any) -> Optional[Dict[str, Any]]:
        """Mapping of a form type/year, or None when the server has none."""
        form_type, checked_year = _require_ids(form_type_id, year)
        try:
            payload = await self.gateway.request(
                "GET", "/form-mappings", params={"form_type_id": form_type, "year": checked_year}
            )
        except NotFoundError:
            return None
        mapping = payload.get("mapping") if isinstance(payload, dict) else None
        if not isinstance(mapping, dict):
            return None
        return {**mapping, "mapping_json": normalize_json(mapping.get("mapping_json")) or {}}

    async def fetch_active_schema(self, form_type_id: Any, year: Any) -> Optional[Dict[str, Any]]:
        """Active schema version of a form type/year, or None when the server has none."""
        form_type, checked_year = _require_ids(form_type_id, year)
        try:
            payload = await self.gateway.request(
                "GET", f"/form-types/{form_type}/active-schema", params={"year": checked_year}
            )
        except NotFoundError:
            return None
        version = payload.get("schemaVersion", payload) if isinstance(payload, dict) else None
        if not isinstance(version, dict):
            return None
        return {**version, "schema_json": normalize_json(version.get("schema_json"))}

    async def fetch_form_schema(self, form_type_id: Any, year: Any, title: Optional[str] = None) -> DownloadedForm:
        """Everything needed to answer a form offline."""
        form_type, checked_year = _require_ids(form_type_id, year)
        mapping = await self.fetch_form_mapping(form_type, checked_year)
        version = await self.fetch_active_schema(form_type, checked_year)
        return DownloadedForm(
            form_type_id=form_type,
            year=checked_year,
            mapping_id=mapping.get("id") if mapping else None,
            schema_version_id=version.get("id") if version else None,
            mapping_json=mapping.get("mapping_json", {}) if mapping else {},
            schema_definition=version.get("schema_json") if version else None,
            title=title,
        )


async def download_form(
    cache: OfflineCache,
    forms_api: FormsApi,
    form_type_id: Any,
    year: Any,
    title: Optional[str] = None,
) -> DownloadedForm:
    """Fetch a form and store it (and its mapping) for offline use."""
    form = await forms_api.fetch_form_schema(form_type_id, year, title=title)
    await cache.save_downloaded_form(form)
    await cache.cache_mapping_json(form.form_type_id, form.year, form.mapping_json)
    logger.info("Downloaded form %s/%s", form.form_type_id, form.year)
    return form


@dataclass
class LoadedForm:
    """A form ready to render."""
    form_type_id: int
    year: int
    title: Optional[str]
    schema_json: Any
    schema_version_id: Optional[int]
    mapping_id: Optional[int]
    mapping_json: Dict[str, Any]
    offline: bool
    fields: List[FieldDescriptor] = field(default_factory=list)


class FormLoader:
    """Resolve a renderable form from the offline cache or the server."""

    def __init__(self, cache: OfflineCache, forms_api: Optional[FormsApi] = None):
        self.cache = cache
        self.forms_api = forms_api

    @staticmethod
    def _from_downloaded(form: DownloadedForm) -> LoadedForm:
        return LoadedForm(
            form_type_id=form.form_type_id,
            year=form.year,
            title=form.title,
            schema_json=form.schema_definition,
            schema_version_id=form.schema_version_id,
            mapping_id=form.mapping_id,
            mapping_json=form.mapping_json,
            offline=True,
            fields=extract_fields(form.schema_definition),
        )

    async def load(self, form_type_id: Any, year: Any, prefer_offline: bool = True) -> LoadedForm:
        """
        Load a form.

        With ``prefer_offline`` a downloaded copy that carries a schema is used
        as is. Otherwise the server is asked first and the downloaded copy is
        the fallback when the network is unreachable.

        Raises:
            FormNotAvailableError: If neither source can provide a schema
        """
        form_type, checked_year = _require_ids(form_type_id, year)
        downloaded = await self.cache.get_downloaded_form(form_type, checked_year)
        if prefer_offline and downloaded is not None and downloaded.schema_definition is not None:
            return self._from_downloaded(downloaded)

        if self.forms_api is None:
            raise FormNotAvailableError(f"Form {form_type}/{checked_year} is not available offline")

        try:
            version = await self.forms_api.fetch_active_schema(form_type, checked_year)
            mapping = await self.forms_api.fetch_form_mapping(form_type, checked_year)
        except NetworkError:
            if downloaded is not None and downloaded.schema_definition is not None:
                logger.info("Server unreachable; using downloaded form %s/%s", form_type, checked_year)
                return self._from_downloaded(downloaded)
            raise

        if version is None:
            raise FormNotAvailableError(f"Form {form_type}/{checked_year} has no active schema")

        if mapping is not None:
            mapping_json = mapping.get("mapping_json", {})
        else:
            mapping_json = await self.cache.get_cached_mapping_json(form_type, checked_year) or {}

        return LoadedForm(
            form_type_id=form_type,
            year=checked_year,
            title=downloaded.title if downloaded else None,
            schema_json=version.get("schema_json"),
            schema_version_id=version.get("id"),
            mapping_id=mapping.get("id") if mapping else None,
            mapping_json=mapping_json,
            offline=False,
            fields=extract_fields(version.get("schema_json")),
        )
