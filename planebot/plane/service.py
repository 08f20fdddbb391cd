"""Plane service facade: the only entry point main.py talks to."""

import asyncio
import html
import logging

from pydantic import ValidationError as ModelValidationError

from planebot.errors import IssueNotFound, NotFoundError, PlaneError
from planebot.models import Attachment, EnrichedIssue, IssueFilters, IssuePage, Priority, RawIssue
from planebot.plane.cache import ReferenceDataCache
from planebot.plane.client import PlaneClient
from planebot.plane.enrichment import enrich, enrich_all
from planebot.plane.uploads import AssetUploadCoordinator
from planebot.settings import PlaneSettings

logger = logging.getLogger(__name__)

PAGE_SIZE = 10


class PlaneService:
    def __init__(self, settings: PlaneSettings, client: PlaneClient | None = None) -> None:
        self.settings = settings
        self.client = client or PlaneClient(settings)
        self.cache = ReferenceDataCache(self.client)
        self.uploads = AssetUploadCoordinator(self.client)

    async def __aenter__(self) -> "PlaneService":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.client.aclose()

    def issue_url(self, issue_id: str) -> str:
        app_url = self.settings.app_url.rstrip("/")
        return f"{app_url}/{self.settings.workspace_slug}/projects/{self.settings.project_id}/issues/{issue_id}"

    def refresh_reference_data(self) -> None:
        self.cache.refresh()

    async def list_issues(self, filters: IssueFilters | None = None) -> IssuePage:
        """Newest-first first page of issues, filtered server-side."""
        filters = filters or IssueFilters()
        states, labels, project = await asyncio.gather(
            self.cache.get_states(),
            self.cache.get_labels(),
            self.cache.get_project_identity(),
        )

        params: dict[str, str] = {"per_page": str(PAGE_SIZE)}
        if filters.state_name_contains:
            params["state__name__icontains"] = filters.state_name_contains
        if filters.priority:
            params["priority"] = filters.priority
        params["order_by"] = "-created_at"

        data = await self.client.get(self.client.project_path("issues/"), params=params, operation="list issues")
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            return IssuePage(total_count=0, items=[])

        raw_issues = [RawIssue.model_validate(node) for node in results]
        total_count = data.get("total_count", data.get("count", len(raw_issues)))
        return IssuePage(total_count=total_count, items=enrich_all(raw_issues, states, labels, project))

    async def create_issue(self, title: str, description: str | None = None, priority: Priority = "none") -> RawIssue:
        body: dict = {"name": title, "priority": priority}
        if description:
            body["description_html"] = f"<p>{html.escape(description)}</p>"
        data = await self.client.post(self.client.project_path("issues/"), body, operation="create issue")
        issue = RawIssue.model_validate(data)
        logger.info("Created issue %s (sequence %d)", issue.id, issue.sequence_number)
        return issue

    async def get_issue_by_id(self, issue_id: str) -> EnrichedIssue:
        try:
            data = await self.client.get(self.client.project_path(f"issues/{issue_id}/"), operation="get issue")
        except NotFoundError as exc:
            raise IssueNotFound(issue_id, operation=exc.operation) from exc

        states, labels, project, attachments = await asyncio.gather(
            self.cache.get_states(),
            self.cache.get_labels(),
            self.cache.get_project_identity(),
            self.get_issue_attachments(issue_id),
        )
        enriched = enrich(RawIssue.model_validate(data), states, labels, project)
        return enriched.model_copy(update={"attachments": attachments})

    async def get_issue_by_sequence_id(self, sequence_id: str) -> EnrichedIssue:
        """Look up by the human-facing id (PROJ-42). A bare number uses this project's identifier."""
        states, labels, project = await asyncio.gather(
            self.cache.get_states(),
            self.cache.get_labels(),
            self.cache.get_project_identity(),
        )
        sequence_id = sequence_id.strip().upper()
        if sequence_id.isdigit():
            sequence_id = f"{project.identifier}-{sequence_id}"

        try:
            data = await self.client.get(
                self.client.workspace_path(f"issues/{sequence_id}/"),
                operation="get issue by sequence id",
            )
        except NotFoundError as exc:
            raise IssueNotFound(sequence_id, operation=exc.operation) from exc

        raw_issue = RawIssue.model_validate(data)
        attachments = await self.get_issue_attachments(raw_issue.id)
        return enrich(raw_issue, states, labels, project).model_copy(update={"attachments": attachments})

    async def get_issue_attachments(self, issue_id: str) -> list[Attachment]:
        try:
            data = await self.client.get(
                self.client.project_path(f"issues/{issue_id}/issue-attachments/"),
                operation="list attachments",
            )
        except PlaneError as exc:
            logger.warning("Could not fetch attachments for issue %s: %s", issue_id, exc)
            return []
        if not isinstance(data, list):
            return []
        attachments = []
        for node in data:
            try:
                attachments.append(Attachment.from_api(node, issue_id=issue_id))
            except (ModelValidationError, KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed attachment record on issue %s: %s", issue_id, exc)
        return attachments

    async def upload_attachment(self, issue_id: str, payload: bytes, file_name: str, content_type: str) -> Attachment:
        return await self.uploads.upload(issue_id, payload, file_name, content_type)
