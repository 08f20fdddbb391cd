"""HTTP boundary for the Plane REST API and the signed-POST storage endpoint."""

import logging
from typing import Any

import httpx

from planebot.errors import NotFoundError, StorageWriteError, UpstreamError
from planebot.settings import PlaneSettings

logger = logging.getLogger(__name__)


class PlaneClient:
    """Thin async wrapper over two httpx clients.

    The API client carries the ``X-API-Key`` header; the storage client is
    unauthenticated because the signed form fields are the authorization.
    """

    def __init__(self, settings: PlaneSettings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        if not settings.api_key:
            raise RuntimeError("api_key is required")
        self.workspace_slug = settings.workspace_slug
        self.project_id = settings.project_id
        self._api = httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            headers={
                "X-API-Key": settings.api_key.get_secret_value(),
                "Content-Type": "application/json",
            },
            timeout=settings.request_timeout,
            transport=transport,
        )
        self._storage = httpx.AsyncClient(timeout=settings.storage_timeout, transport=transport)

    async def __aenter__(self) -> "PlaneClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._api.aclose()
        await self._storage.aclose()

    def workspace_path(self, suffix: str = "") -> str:
        return f"/workspaces/{self.workspace_slug}/{suffix}"

    def project_path(self, suffix: str = "") -> str:
        return self.workspace_path(f"projects/{self.project_id}/{suffix}")

    async def get(self, path: str, params: dict | None = None, *, operation: str) -> Any:
        return await self._request("GET", path, operation=operation, params=params)

    async def post(self, path: str, body: dict, *, operation: str) -> Any:
        return await self._request("POST", path, operation=operation, json=body)

    async def patch(self, path: str, body: dict, *, operation: str) -> Any:
        return await self._request("PATCH", path, operation=operation, json=body)

    async def _request(self, method: str, path: str, *, operation: str, **kwargs) -> Any:
        try:
            response = await self._api.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.debug("%s %s failed: %s", method, path, exc)
            raise UpstreamError(f"Plane API unreachable during {operation}: {exc}", operation=operation) from exc

        logger.debug("%s %s -> %d", method, path, response.status_code)
        if response.status_code == 404:
            raise NotFoundError(f"Plane API returned 404 during {operation}", operation=operation)
        if response.status_code == 401:
            raise UpstreamError(
                "Plane API returned 401. Check the api_key for the active profile.",
                operation=operation,
                status_code=401,
            )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise UpstreamError(
                f"Plane API error {response.status_code} during {operation}: {response.text[:200]}",
                operation=operation,
                status_code=response.status_code,
            ) from exc

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Plane API returned a non-JSON body during {operation}",
                operation=operation,
                status_code=response.status_code,
            ) from exc

    async def post_form(
        self,
        url: str,
        fields: dict[str, str],
        file_name: str,
        payload: bytes,
        content_type: str,
    ) -> None:
        """Multipart POST to a storage provider.

        httpx writes ``data`` fields in insertion order before ``files``, so the
        signed fields keep their order and ``file`` is always the last part.
        """
        try:
            response = await self._storage.post(
                url,
                data=fields,
                files={"file": (file_name, payload, content_type)},
            )
        except httpx.HTTPError as exc:
            raise StorageWriteError(f"Storage upload failed: {exc}", operation="storage write") from exc

        logger.debug("POST %s -> %d", url, response.status_code)
        if response.is_error:
            raise StorageWriteError(
                f"Storage rejected the upload with status {response.status_code}",
                operation="storage write",
                status_code=response.status_code,
            )
