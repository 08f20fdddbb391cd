"""Memoized reference data (states, labels, project identity) for one project."""

import asyncio
import logging

from pydantic import ValidationError as ModelValidationError

from planebot.errors import PlaneError
from planebot.models import Label, ProjectIdentity, WorkflowState
from planebot.plane.client import PlaneClient

logger = logging.getLogger(__name__)


class ReferenceDataCache:
    """Fetch-once cache with one lock per slot.

    Concurrent cold-cache callers of the same slot wait on the lock and share
    the first caller's result. A failed states/labels fetch is not memoized,
    so the next call retries.
    """

    def __init__(self, client: PlaneClient) -> None:
        self._client = client
        self._states: dict[str, WorkflowState] | None = None
        self._labels: dict[str, Label] | None = None
        self._project: ProjectIdentity | None = None
        self._states_lock = asyncio.Lock()
        self._labels_lock = asyncio.Lock()
        self._project_lock = asyncio.Lock()

    def refresh(self) -> None:
        """Drop every memoized slot; the next lookup refetches."""
        self._states = None
        self._labels = None
        self._project = None

    async def get_states(self) -> dict[str, WorkflowState]:
        if self._states is not None:
            return self._states
        async with self._states_lock:
            if self._states is None:
                states = await self._fetch_results("states/", WorkflowState, "fetch states")
                if states is None:
                    return {}
                self._states = states
            return self._states

    async def get_labels(self) -> dict[str, Label]:
        if self._labels is not None:
            return self._labels
        async with self._labels_lock:
            if self._labels is None:
                labels = await self._fetch_results("labels/", Label, "fetch labels")
                if labels is None:
                    return {}
                self._labels = labels
            return self._labels

    async def get_project_identity(self) -> ProjectIdentity:
        # Failures propagate: formatted ids are meaningless without the identifier.
        if self._project is not None:
            return self._project
        async with self._project_lock:
            if self._project is None:
                data = await self._client.get(self._client.project_path(), operation="fetch project")
                self._project = ProjectIdentity.model_validate(data)
            return self._project

    async def _fetch_results(self, suffix: str, model: type, operation: str) -> dict | None:
        """Return {id: model} for a paginated list endpoint, or None on any failure."""
        try:
            data = await self._client.get(self._client.project_path(suffix), operation=operation)
        except PlaneError as exc:
            logger.warning("Could not %s: %s", operation, exc)
            return None

        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            logger.warning("Invalid response while trying to %s: %r", operation, data)
            return None
        try:
            items = [model.model_validate(node) for node in data["results"]]
        except ModelValidationError as exc:
            logger.warning("Malformed record while trying to %s: %s", operation, exc)
            return None
        return {item.id: item for item in items}
