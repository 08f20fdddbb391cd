"""Shared pydantic models — the contract between the Plane adapter and main.py."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Priority = Literal["urgent", "high", "medium", "low", "none"]
StateGroup = Literal["backlog", "unstarted", "started", "completed", "cancelled", "duplicate"]


class ProjectIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    identifier: str  # short code, e.g. PROJ
    name: str


class WorkflowState(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    color: str | None = None
    group: str  # a StateGroup value; not enforced so newer server-side groups still load
    sequence: float | None = None
    is_default: bool = Field(default=False, alias="default")
    description: str | None = None


class UnknownState(BaseModel):
    """Stands in for a state id that does not resolve."""

    model_config = ConfigDict(frozen=True)

    name: Literal["Unknown"] = "Unknown"
    group: Literal["Unknown"] = "Unknown"
    color: None = None


UNKNOWN_STATE = UnknownState()


class Label(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    color: str | None = None


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    issue_id: str
    file_name: str
    file_size_bytes: int
    content_type: str

    @classmethod
    def from_api(cls, node: dict, issue_id: str | None = None) -> "Attachment":
        """Build from a Plane issue-attachment record ({id, issue, attributes: {name, size, type}})."""
        attributes = node.get("attributes") or {}
        return cls(
            id=str(node["id"]),
            issue_id=str(node.get("issue") or issue_id or ""),
            file_name=attributes.get("name") or "",
            file_size_bytes=int(attributes.get("size") or 0),
            content_type=attributes.get("type") or "application/octet-stream",
        )


class RawIssue(BaseModel):
    """An issue as returned by the Plane API, with foreign keys unresolved."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    description_html: str | None = None
    description_stripped: str | None = None
    priority: Priority = "none"
    state_id: str | None = Field(default=None, alias="state")
    label_ids: list[str] = Field(alias="labels")
    created_at: str | None = None
    updated_at: str | None = None
    sequence_number: int = Field(alias="sequence_id")

    @field_validator("priority", mode="before")
    @classmethod
    def _null_priority(cls, value: object) -> object:
        return "none" if value is None else value


class EnrichedIssue(RawIssue):
    """RawIssue with state, labels and the formatted id resolved for display."""

    state_detail: WorkflowState | UnknownState
    label_details: list[Label] = []
    formatted_id: str
    description: str
    attachments: list[Attachment] = []


class IssueFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    state_name_contains: str | None = None
    priority: Priority | None = None


class IssuePage(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_count: int
    items: list[EnrichedIssue] = []


class UploadCredential(BaseModel):
    """Single-use signed-POST authorization for one upload attempt."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    storage_url: str
    form_fields: dict[str, str]  # order matters: the signature covers it

    @classmethod
    def from_api(cls, data: dict) -> "UploadCredential":
        upload_data = data["upload_data"]
        return cls(
            asset_id=str(data["asset_id"]),
            storage_url=upload_data["url"],
            form_fields={k: str(v) for k, v in upload_data["fields"].items()},
        )
