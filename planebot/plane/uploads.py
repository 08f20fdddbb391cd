"""Three-phase signed-POST upload of a file to an issue.

    VALIDATING -> CREDENTIALS_ACQUIRED -> STORAGE_WRITTEN -> COMPLETED
                       (any state) -> FAILED

1. validate    size check, no network
2. credentials Plane issues an asset id and signed storage form fields
3. storage     multipart POST of the signed fields + file to object storage
4. complete    Plane marks the asset uploaded and links it to the issue

Once phase 3 starts the rest runs under ``asyncio.shield``: abandoning it
after the storage write would leave an orphaned object. Orphans left by a
failed phase 4 are not cleaned up.
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum

from planebot.errors import (
    CredentialError,
    FileTooLarge,
    IssueNotFound,
    NotFoundError,
    PartialUploadError,
    PlaneError,
    UpstreamError,
    UploadPhase,
)
from planebot.models import Attachment, UploadCredential
from planebot.plane.client import PlaneClient

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def guess_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name)
    return content_type or "application/octet-stream"


class UploadState(str, Enum):
    VALIDATING = "validating"
    CREDENTIALS_ACQUIRED = "credentials_acquired"
    STORAGE_WRITTEN = "storage_written"
    COMPLETED = "completed"
    FAILED = "failed"


_NEXT_STATE = {
    UploadState.VALIDATING: UploadState.CREDENTIALS_ACQUIRED,
    UploadState.CREDENTIALS_ACQUIRED: UploadState.STORAGE_WRITTEN,
    UploadState.STORAGE_WRITTEN: UploadState.COMPLETED,
}

# phase that runs while the attempt sits in each state
_PHASE_FOR_STATE = {
    UploadState.VALIDATING: UploadPhase.VALIDATE,
    UploadState.CREDENTIALS_ACQUIRED: UploadPhase.STORAGE,
    UploadState.STORAGE_WRITTEN: UploadPhase.COMPLETE,
}


@dataclass
class UploadAttempt:
    issue_id: str
    file_name: str
    size: int
    content_type: str
    state: UploadState = UploadState.VALIDATING
    failed_phase: UploadPhase | None = None
    history: list[UploadState] = field(default_factory=lambda: [UploadState.VALIDATING])

    @property
    def current_phase(self) -> UploadPhase | None:
        return _PHASE_FOR_STATE.get(self.state)

    def advance(self, target: UploadState) -> None:
        if _NEXT_STATE.get(self.state) is not target:
            raise RuntimeError(f"Illegal upload transition {self.state.value} -> {target.value}")
        self._move(target)

    def fail(self, phase: UploadPhase) -> None:
        if self.state in (UploadState.COMPLETED, UploadState.FAILED):
            raise RuntimeError(f"Cannot fail an upload in state {self.state.value}")
        self.failed_phase = phase
        self._move(UploadState.FAILED)

    def _move(self, target: UploadState) -> None:
        logger.debug("Upload of %s to %s: %s -> %s", self.file_name, self.issue_id, self.state.value, target.value)
        self.state = target
        self.history.append(target)


class AssetUploadCoordinator:
    def __init__(self, client: PlaneClient, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
        self._client = client
        self.max_bytes = max_bytes

    async def upload(self, issue_id: str, payload: bytes, file_name: str, content_type: str) -> Attachment:
        """Attach ``payload`` to the issue. Returns the Attachment only on full completion.

        Cancelling the caller after phase 3 has started does not abandon the
        write: the storage write and completion run to the end (their outcome
        is logged) before the cancellation is re-raised.
        """
        attempt = UploadAttempt(issue_id=issue_id, file_name=file_name, size=len(payload), content_type=content_type)
        try:
            if attempt.size > self.max_bytes:
                raise FileTooLarge(attempt.size, self.max_bytes, phase=UploadPhase.VALIDATE)

            # Phase 2 is sent while still in VALIDATING; only success moves the state on.
            credential = await self._acquire_credential(attempt)
            attempt.advance(UploadState.CREDENTIALS_ACQUIRED)

            task = asyncio.ensure_future(self._write_and_complete(attempt, payload, credential))
            try:
                return await asyncio.shield(task)
            except asyncio.CancelledError:
                # The client must stay open until the shielded phases settle.
                logger.warning("Upload of %s to issue %s cancelled; finishing the storage write", file_name, issue_id)
                try:
                    await task
                except PlaneError as exc:
                    self._log_failure(attempt, exc)
                raise
        except PlaneError as exc:
            self._log_failure(attempt, exc)
            raise

    def _log_failure(self, attempt: UploadAttempt, exc: PlaneError) -> None:
        if attempt.state not in (UploadState.FAILED, UploadState.COMPLETED):
            attempt.fail(exc.phase or attempt.current_phase or UploadPhase.VALIDATE)
        logger.error(
            "Upload of %s to issue %s failed in phase %s: %s",
            attempt.file_name,
            attempt.issue_id,
            attempt.failed_phase.value if attempt.failed_phase else "unknown",
            exc,
            extra={"plane_error": exc.log_context()},
        )

    async def _acquire_credential(self, attempt: UploadAttempt) -> UploadCredential:
        path = self._client.project_path(f"issues/{attempt.issue_id}/issue-attachments/")
        body = {"name": attempt.file_name, "type": attempt.content_type, "size": attempt.size}
        try:
            data = await self._client.post(path, body, operation="request upload credentials")
        except NotFoundError as exc:
            raise IssueNotFound(attempt.issue_id, phase=UploadPhase.CREDENTIALS) from exc
        except UpstreamError as exc:
            if exc.status_code == 413:
                raise FileTooLarge(attempt.size, phase=UploadPhase.CREDENTIALS) from exc
            raise CredentialError(str(exc), status_code=exc.status_code, operation=exc.operation) from exc

        try:
            return UploadCredential.from_api(data)
        except (KeyError, TypeError, AttributeError, ValueError) as exc:
            raise CredentialError(
                "Plane returned an upload authorization without asset_id or upload_data",
                operation="request upload credentials",
            ) from exc

    async def _write_and_complete(
        self,
        attempt: UploadAttempt,
        payload: bytes,
        credential: UploadCredential,
    ) -> Attachment:
        await self._client.post_form(
            credential.storage_url,
            credential.form_fields,
            attempt.file_name,
            payload,
            attempt.content_type,
        )
        attempt.advance(UploadState.STORAGE_WRITTEN)

        path = self._client.project_path(f"issues/{attempt.issue_id}/issue-attachments/{credential.asset_id}/")
        try:
            await self._client.patch(path, {"is_uploaded": True}, operation="complete upload")
        except Exception as exc:
            # Anything after the storage write, including a closed client, leaves an orphaned asset.
            status_code = getattr(exc, "status_code", None)
            raise PartialUploadError(
                credential.asset_id,
                attempt.issue_id,
                operation="complete upload",
                status_code=status_code,
            ) from exc
        attempt.advance(UploadState.COMPLETED)

        logger.info("Attached %s (%d bytes) to issue %s", attempt.file_name, attempt.size, attempt.issue_id)
        return Attachment(
            id=credential.asset_id,
            issue_id=attempt.issue_id,
            file_name=attempt.file_name,
            file_size_bytes=attempt.size,
            content_type=attempt.content_type,
        )
