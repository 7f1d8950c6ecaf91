"""Client half of the draft -> submission reconciliation protocol.

ensure_submission -> push_answers -> finalize. A failing step aborts the
sequence and re-raises; completed server steps stay (they are idempotent)
and the local draft is left untouched apart from its server id.
"""
import logging
from typing import Any, Dict

from fieldsync.offline.api import SubmissionsApi
from fieldsync.offline.cache import OfflineCache
from fieldsync.offline.errors import GatewayError, SyncError
from fieldsync.offline.models import Draft

logger = logging.getLogger(__name__)

MODE_DRAFT = "draft"
MODE_SUBMIT = "submit"


class SubmissionSync:
    """Pushes one draft to the server."""

    def __init__(self, submissions_api: SubmissionsApi, cache: OfflineCache):
        self.api = submissions_api
        self.cache = cache

    async def ensure_submission(self, draft: Draft) -> int:
        """Create the server submission once; its id is persisted on the draft right away."""
        if draft.server_submission_id:
            return draft.server_submission_id

        result = await self.api.create(
            draft.form_type_id,
            draft.year,
            mapping_id=draft.mapping_id,
            schema_version_id=draft.schema_version_id,
            location=draft.location,
        )
        submission = result.get("submission") if isinstance(result, dict) else None
        if not isinstance(submission, dict) or not submission.get("id"):
            raise SyncError("Server did not return a submission id", draft_id=draft.draft_id)

        draft.server_submission_id = int(submission["id"])
        await self.cache.save_draft(draft)
        return draft.server_submission_id

    async def push_answers(self, draft: Draft, submission_id: int, mode: str = MODE_DRAFT) -> Dict[str, Any]:
        return await self.api.save_answers(
            submission_id,
            answers=draft.answers,
            snapshots=draft.snapshots,
            location=draft.location,
            mode=mode,
        )

    async def finalize(self, draft: Draft, submission_id: int) -> Dict[str, Any]:
        """Submit; only a returned ``submitted`` status counts as acknowledged."""
        submission = await self.api.submit(submission_id)
        if not isinstance(submission, dict) or submission.get("status") != "submitted":
            raise SyncError(f"Submission {submission_id} was not acknowledged as submitted", draft_id=draft.draft_id)
        return submission

    async def run(self, draft: Draft, mode: str = MODE_SUBMIT) -> int:
        """
        Run the protocol for a draft.

        Returns:
            The server submission id

        Raises:
            GatewayError, SyncError: From the failing step
        """
        step = "ensure_submission"
        try:
            submission_id = await self.ensure_submission(draft)
            step = "push_answers"
            await self.push_answers(draft, submission_id, mode=mode)
            if mode == MODE_SUBMIT:
                step = "finalize"
                await self.finalize(draft, submission_id)
        except (GatewayError, SyncError) as exc:
            logger.warning("Sync of draft %s failed at %s: %s", draft.draft_id, step, exc)
            raise
        return submission_id
