"""Async HTTP client for the Elasticsearch/OpenSearch search API."""

import asyncio
import uuid
from typing import Any, Protocol

import httpx

from ..config import BackendSettings
from ..errors import BackendError
from ..logging_config import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS = {429, 502, 503, 504}
MAX_RESULT_WINDOW = 10000


class ISearchClient(Protocol):
    """Raw access to the search backend."""

    async def search(self, index: str, body: dict[str, Any]) -> dict[str, Any]:
        """Run a search request and return the decoded response body."""
        ...

    async def ping(self) -> bool:
        """Check that the backend answers."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...


class SearchClient:
    """httpx-based search client with retry and ApiKey/basic authentication."""

    def __init__(
        self,
        settings: BackendSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings or BackendSettings.from_env()

        headers = {"Content-Type": "application/json"}
        auth = None
        if self._settings.api_key:
            headers["Authorization"] = f"ApiKey {self._settings.api_key}"
        elif self._settings.username and self._settings.password:
            auth = httpx.BasicAuth(self._settings.username, self._settings.password)

        self._client = httpx.AsyncClient(
            base_url=self._settings.url,
            headers=headers,
            auth=auth,
            timeout=self._settings.timeout,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        request_id = uuid.uuid4().hex[:8]
        path = path if path.startswith("/") else f"/{path}"
        attempts = self._settings.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.request(method, path, json=body, params=params)
            except httpx.TransportError as e:
                if attempt < attempts:
                    await self._backoff(request_id, path, attempt, str(e))
                    continue
                logger.error(
                    "Search request failed",
                    extra={"context": {"request_id": request_id, "path": path, "error": str(e)}},
                )
                raise BackendError(f"Search backend unreachable: {e}") from e

            if response.status_code in RETRYABLE_STATUS and attempt < attempts:
                await self._backoff(request_id, path, attempt, f"HTTP {response.status_code}")
                continue

            if response.is_success:
                try:
                    return response.json()
                except ValueError as e:
                    raise BackendError(
                        "Search backend returned a non-JSON body",
                        status=response.status_code,
                    ) from e

            raise self._error_from_response(request_id, path, response)

        # Unreachable: the last attempt either returns or raises.
        raise BackendError("Search request failed")

    async def _backoff(self, request_id: str, path: str, attempt: int, reason: str) -> None:
        logger.warning(
            "Retrying search request (%s/%s)",
            attempt,
            self._settings.max_retries,
            extra={"context": {"request_id": request_id, "path": path, "reason": reason}},
        )
        await asyncio.sleep(self._settings.retry_delay)

    def _error_from_response(
        self, request_id: str, path: str, response: httpx.Response
    ) -> BackendError:
        try:
            payload = response.json()
        except ValueError:
            payload = None

        error = payload.get("error") if isinstance(payload, dict) else None
        error_type = reason = None
        if isinstance(error, dict):
            root_cause = (error.get("root_cause") or [{}])[0]
            error_type = error.get("type")
            reason = error.get("reason") or root_cause.get("reason")
        elif isinstance(error, str):
            reason = error

        logger.error(
            "Search request failed",
            extra={
                "context": {
                    "request_id": request_id,
                    "path": path,
                    "status": response.status_code,
                    "type": error_type,
                    "reason": reason,
                }
            },
        )
        return BackendError(
            f"Search backend error: {error_type or 'unknown'} - {reason or response.reason_phrase}",
            status=response.status_code,
            error_type=error_type,
            reason=reason,
        )

    async def search(self, index: str, body: dict[str, Any]) -> dict[str, Any]:
        body = dict(body)
        body.setdefault("track_total_hits", True)
        if isinstance(body.get("size"), int) and body["size"] > MAX_RESULT_WINDOW:
            logger.warning("Large result size requested (%s)", body["size"])
        return await self._request(
            "POST",
            f"/{index}/_search",
            body=body,
            params={"ignore_unavailable": "true", "allow_no_indices": "true"},
        )

    async def ping(self) -> bool:
        try:
            await self._request("GET", "/")
            return True
        except BackendError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
