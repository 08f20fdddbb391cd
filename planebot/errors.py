"""Closed error taxonomy for the Plane adapter.

Errors are created where the transport call is made (PlaneClient) or where an
upload phase fails (AssetUploadCoordinator). Callers match on the class, never
on the shape of an httpx response.
"""

from enum import Enum


class UploadPhase(str, Enum):
    VALIDATE = "validate"
    CREDENTIALS = "credentials"
    STORAGE = "storage"
    COMPLETE = "complete"


class PlaneError(Exception):
    """Base class. ``str(err)`` is the human-readable message."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        phase: UploadPhase | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.phase = phase

    def log_context(self) -> dict:
        """Structured cause for logging."""
        context: dict = {"error": type(self).__name__}
        if self.operation:
            context["operation"] = self.operation
        if self.phase:
            context["phase"] = self.phase.value
        if self.__cause__ is not None:
            context["cause"] = repr(self.__cause__)
        return context


class NotFoundError(PlaneError):
    pass


class IssueNotFound(NotFoundError):
    def __init__(self, issue_id: str, **kwargs) -> None:
        super().__init__(f"Issue '{issue_id}' not found", **kwargs)
        self.issue_id = issue_id


class ValidationError(PlaneError):
    pass


class FileTooLarge(ValidationError):
    def __init__(self, size: int, limit: int | None = None, **kwargs) -> None:
        if limit is not None:
            message = f"File is {size} bytes; the maximum is {limit} bytes"
        else:
            message = f"File of {size} bytes was rejected as too large"
        super().__init__(message, **kwargs)
        self.size = size
        self.limit = limit


class UpstreamError(PlaneError):
    """Transport or server-side failure from the Plane API."""

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code

    def log_context(self) -> dict:
        context = super().log_context()
        if self.status_code is not None:
            context["status_code"] = self.status_code
        return context


class CredentialError(UpstreamError):
    def __init__(self, message: str, **kwargs) -> None:
        super().__init__(message, phase=UploadPhase.CREDENTIALS, **kwargs)


class CompletionError(UpstreamError):
    def __init__(self, message: str, **kwargs) -> None:
        super().__init__(message, phase=UploadPhase.COMPLETE, **kwargs)


class PartialUploadError(CompletionError):
    """The file reached storage but Plane never linked it to the issue.

    Credentials are single-use: recover by running the whole upload again, or
    reconcile ``asset_id`` by hand.
    """

    def __init__(self, asset_id: str, issue_id: str, **kwargs) -> None:
        super().__init__(
            f"File was stored as asset {asset_id} but could not be attached to issue {issue_id}; retry the upload",
            **kwargs,
        )
        self.asset_id = asset_id
        self.issue_id = issue_id

    def log_context(self) -> dict:
        context = super().log_context()
        context["asset_id"] = self.asset_id
        context["issue_id"] = self.issue_id
        return context


class StorageError(PlaneError):
    def __init__(self, message: str, *, status_code: int | None = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.status_code = status_code

    def log_context(self) -> dict:
        context = super().log_context()
        if self.status_code is not None:
            context["status_code"] = self.status_code
        return context


class StorageWriteError(StorageError):
    def __init__(self, message: str, **kwargs) -> None:
        super().__init__(message, phase=UploadPhase.STORAGE, **kwargs)
