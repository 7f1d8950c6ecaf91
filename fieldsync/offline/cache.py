"""Offline cache manager: drafts, downloaded forms and small lookup caches.

Each collection lives under one key as a JSON array and every write replaces
the whole array. Reads never raise: an unavailable store or corrupt JSON
reads as an empty collection. Writes do raise, so callers learn a save failed.
"""
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

import anyio
from pydantic import ValidationError

from fieldsync.offline.errors import StorageError
from fieldsync.offline.kv_store import KeyValueStore
from fieldsync.offline.models import DownloadedForm, Draft, to_int

logger = logging.getLogger(__name__)

DRAFTS_KEY = "offline:drafts"
FORMS_KEY = "offline:forms"
FORM_TYPES_KEY = "form_types:active"
DEVICE_ID_KEY = "device_id"


def mapping_key(form_type_id: Any, year: Any) -> str:
    return f"mapping_json:{form_type_id}:{year}"


class OfflineCache:
    """Async facade over a ``KeyValueStore``; one writer at a time per collection."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._locks: Dict[str, anyio.Lock] = {}

    def _lock(self, key: str) -> anyio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = anyio.Lock()
        return lock

    async def _read_json(self, key: str) -> Any:
        try:
            raw = await self.store.get(key)
        except StorageError:
            logger.warning("Storage unavailable reading %s", key)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Corrupt JSON under %s; ignoring it", key)
            return None

    async def _read_list(self, key: str) -> List[Any]:
        value = await self._read_json(key)
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning("Expected a list under %s, got %s", key, type(value).__name__)
            return []
        return value

    async def _write_json(self, key: str, value: Any) -> None:
        await self.store.set(key, json.dumps(value))

    # ---- drafts ----

    async def list_drafts(self) -> List[Draft]:
        drafts = []
        for entry in await self._read_list(DRAFTS_KEY):
            try:
                drafts.append(Draft.model_validate(entry))
            except ValidationError:
                logger.warning("Skipping unreadable draft entry")
        return drafts

    async def get_draft(self, draft_id: str) -> Optional[Draft]:
        for draft in await self.list_drafts():
            if draft.draft_id == draft_id:
                return draft
        return None

    async def save_draft(self, draft: Draft) -> Draft:
        """Replace the draft with the same ``draftId`` in place, or append it."""
        if not draft.draft_id:
            raise ValueError("draft_id is required to store a draft")
        async with self._lock(DRAFTS_KEY):
            entries = await self._read_list(DRAFTS_KEY)
            record = draft.to_record()
            for index, entry in enumerate(entries):
                if isinstance(entry, dict) and entry.get("draftId") == draft.draft_id:
                    entries[index] = record
                    break
            else:
                entries.append(record)
            await self._write_json(DRAFTS_KEY, entries)
        return draft

    async def delete_draft(self, draft_id: str) -> None:
        async with self._lock(DRAFTS_KEY):
            entries = await self._read_list(DRAFTS_KEY)
            kept = [e for e in entries if not (isinstance(e, dict) and e.get("draftId") == draft_id)]
            await self._write_json(DRAFTS_KEY, kept)

    # ---- downloaded forms ----

    async def _load_forms(self) -> List[DownloadedForm]:
        entries = await self._read_list(FORMS_KEY)
        by_identity: Dict[tuple, DownloadedForm] = {}
        changed = False
        for entry in entries:
            form = DownloadedForm.from_record(entry)
            if form is None:
                changed = True
                continue
            if form.identity in by_identity or form.to_record() != entry:
                changed = True
            by_identity[form.identity] = form

        forms = list(by_identity.values())
        if changed:
            logger.warning("Healed downloaded forms collection (%d -> %d entries)", len(entries), len(forms))
            try:
                await self._write_json(FORMS_KEY, [f.to_record() for f in forms])
            except StorageError:
                logger.warning("Could not write back healed downloaded forms")
        return forms

    async def list_downloaded_forms(self) -> List[DownloadedForm]:
        async with self._lock(FORMS_KEY):
            return await self._load_forms()

    async def get_downloaded_form(self, form_type_id: Any, year: Any) -> Optional[DownloadedForm]:
        identity = (to_int(form_type_id), to_int(year))
        for form in await self.list_downloaded_forms():
            if form.identity == identity:
                return form
        return None

    async def save_downloaded_form(self, form: DownloadedForm) -> DownloadedForm:
        """Replace the entry with the same ``(formTypeId, year)``, or append it."""
        async with self._lock(FORMS_KEY):
            forms = await self._load_forms()
            for index, existing in enumerate(forms):
                if existing.identity == form.identity:
                    forms[index] = form
                    break
            else:
                forms.append(form)
            await self._write_json(FORMS_KEY, [f.to_record() for f in forms])
        return form

    async def delete_downloaded_form(self, form_type_id: Any, year: Any) -> None:
        identity = (to_int(form_type_id), to_int(year))
        async with self._lock(FORMS_KEY):
            forms = await self._load_forms()
            kept = [f for f in forms if f.identity != identity]
            await self._write_json(FORMS_KEY, [f.to_record() for f in kept])

    # ---- lookup caches ----

    async def cache_mapping_json(self, form_type_id: Any, year: Any, mapping_json: Optional[Dict[str, Any]]) -> None:
        await self._write_json(mapping_key(form_type_id, year), mapping_json or {})

    async def get_cached_mapping_json(self, form_type_id: Any, year: Any) -> Optional[Dict[str, Any]]:
        value = await self._read_json(mapping_key(form_type_id, year))
        return value if isinstance(value, dict) else None

    async def clear_cached_mapping(self, form_type_id: Any, year: Any) -> None:
        await self.store.delete(mapping_key(form_type_id, year))

    async def cache_form_types(self, form_types: Optional[List[Any]]) -> None:
        await self._write_json(FORM_TYPES_KEY, list(form_types or []))

    async def get_cached_form_types(self) -> Optional[List[Any]]:
        value = await self._read_json(FORM_TYPES_KEY)
        return value if isinstance(value, list) else None

    async def get_or_create_device_id(self) -> str:
        """Stable per-installation identifier."""
        async with self._lock(DEVICE_ID_KEY):
            try:
                existing = await self.store.get(DEVICE_ID_KEY)
            except StorageError:
                existing = None
            if existing:
                return existing
            device_id = str(uuid.uuid4())
            await self.store.set(DEVICE_ID_KEY, device_id)
            return device_id
