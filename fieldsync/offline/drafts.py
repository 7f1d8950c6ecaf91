"""Draft lifecycle on the device.

    new --save--> local_dirty --sync--> local_clean
                      |  ^                  |
                      |  +---- set_answer --+
                      +--submit--> reconciling --ack--> synced (row deleted)
                                        |
                                        +--failure--> local_dirty

A draft is deleted only after the server acknowledged the submit; every
failure leaves the stored draft as it was.
"""
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Set

from fieldsync.forms.answers import AnswerRecord, build_answer_record
from fieldsync.forms.location import LOCATION_FIELDS, missing_location_fields
from fieldsync.forms.schema import FieldDescriptor, Option, build_snapshots_from_schema
from fieldsync.offline.cache import OfflineCache
from fieldsync.offline.errors import GatewayError, LocationIncompleteError, StorageError, SyncError
from fieldsync.offline.models import Draft, DraftStatus, Location, now_ms
from fieldsync.offline.sync import MODE_DRAFT, MODE_SUBMIT, SubmissionSync

logger = logging.getLogger(__name__)


class DraftState(str, Enum):
    NEW = "new"
    LOCAL_DIRTY = "local_dirty"
    LOCAL_CLEAN = "local_clean"
    RECONCILING = "reconciling"
    SYNCED = "synced"


@dataclass
class SubmitOutcome:
    """Result of submitting one stored draft."""
    draft_id: str
    submission_id: Optional[int] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def make_draft_id() -> str:
    return f"draft_{uuid.uuid4().hex}"


class DraftManager:
    """Creates, edits, stores and pushes drafts."""

    def __init__(self, cache: OfflineCache, sync: SubmissionSync):
        self.cache = cache
        self.sync_protocol = sync
        self._reconciling: Set[str] = set()

    def new_draft(
        self,
        form_type_id: int,
        year: int,
        *,
        mapping_id: Optional[int] = None,
        schema_version_id: Optional[int] = None,
        schema_json: Any = None,
        location: Optional[Mapping[str, Any]] = None,
    ) -> Draft:
        """An unsaved draft with a snapshot seeded for every schema field."""
        return Draft(
            form_type_id=form_type_id,
            year=year,
            mapping_id=mapping_id,
            schema_version_id=schema_version_id,
            location=Location.model_validate(dict(location or {})),
            snapshots=build_snapshots_from_schema(schema_json),
        )

    def set_answer(
        self,
        draft: Draft,
        field: Any,
        value: Any,
        options: Optional[Iterable[Option]] = None,
    ) -> AnswerRecord:
        """Record an answer and refresh the field's snapshot."""
        key = field.key if isinstance(field, FieldDescriptor) else None
        record = build_answer_record(field, value, draft.snapshots.get(key) if key else None, options)
        draft.answers[record.field_key] = value
        draft.snapshots[record.field_key] = record.snapshot.to_dict()
        draft.dirty = True
        return record

    def set_location(self, draft: Draft, **values: Any) -> Draft:
        current = draft.location.model_dump()
        current.update({k: v for k, v in values.items() if k in LOCATION_FIELDS})
        draft.location = Location.model_validate(current)
        draft.dirty = True
        return draft

    async def save(self, draft: Draft) -> Draft:
        """
        Store the draft locally, assigning its id on first save.

        Raises:
            LocationIncompleteError: If province or city is blank
        """
        missing = missing_location_fields(draft.location, strict=False)
        if missing:
            raise LocationIncompleteError(missing)
        if not draft.draft_id:
            draft.draft_id = make_draft_id()
        draft.updated_at = now_ms()
        draft.dirty = True
        return await self.cache.save_draft(draft)

    async def get(self, draft_id: str) -> Optional[Draft]:
        return await self.cache.get_draft(draft_id)

    async def list(self) -> List[Draft]:
        return await self.cache.list_drafts()

    async def remove(self, draft_id: str) -> None:
        await self.cache.delete_draft(draft_id)

    async def state_of(self, draft: Draft) -> DraftState:
        if draft.draft_id and draft.draft_id in self._reconciling:
            return DraftState.RECONCILING
        stored = await self.cache.get_draft(draft.draft_id) if draft.draft_id else None
        if stored is None:
            return DraftState.SYNCED if draft.status == DraftStatus.SUBMITTED else DraftState.NEW
        return DraftState.LOCAL_DIRTY if stored.dirty else DraftState.LOCAL_CLEAN

    async def sync(self, draft: Draft) -> int:
        """
        Push the draft's answers without submitting; the draft is kept.

        Returns:
            The server submission id
        """
        if not draft.draft_id:
            await self.save(draft)
        self._reconciling.add(draft.draft_id)
        try:
            submission_id = await self.sync_protocol.run(draft, mode=MODE_DRAFT)
            draft.dirty = False
            await self.cache.save_draft(draft)
        finally:
            self._reconciling.discard(draft.draft_id)
        return submission_id

    async def submit(self, draft: Draft) -> int:
        """
        Submit the draft; it is deleted locally once the server acknowledged it.

        Returns:
            The server submission id

        Raises:
            LocationIncompleteError: Before any remote call, if the location is incomplete
            GatewayError, SyncError: From the failing protocol step
        """
        missing = missing_location_fields(draft.location, strict=True)
        if missing:
            raise LocationIncompleteError(missing)
        if not draft.draft_id:
            await self.save(draft)

        self._reconciling.add(draft.draft_id)
        try:
            submission_id = await self.sync_protocol.run(draft, mode=MODE_SUBMIT)
            draft.status = DraftStatus.SUBMITTED
            await self.cache.delete_draft(draft.draft_id)
        finally:
            self._reconciling.discard(draft.draft_id)
        logger.info("Draft %s submitted as %s", draft.draft_id, submission_id)
        return submission_id

    async def submit_pending(self) -> List[SubmitOutcome]:
        """Submit every stored draft; one failure does not stop the others."""
        outcomes = []
        for draft in await self.cache.list_drafts():
            try:
                submission_id = await self.submit(draft)
            except (GatewayError, SyncError, LocationIncompleteError, StorageError) as exc:
                outcomes.append(SubmitOutcome(draft_id=draft.draft_id, error=exc))
                continue
            outcomes.append(SubmitOutcome(draft_id=draft.draft_id, submission_id=submission_id))
        return outcomes
