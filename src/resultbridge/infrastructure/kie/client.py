from __future__ import annotations

import logging
from typing import Any

import httpx

from src.resultbridge.domain.exceptions import (
    ProviderExhaustedError,
    ProviderNotConfiguredError,
    ProviderRequestError,
)
from src.resultbridge.domain.models.media_kind import MediaKind
from src.resultbridge.domain.normalizer import extract_task_id, normalize
from src.resultbridge.domain.repositories import ProviderRepository
from src.resultbridge.infrastructure.kie.endpoints import StatusEndpoint, endpoints_for

logger = logging.getLogger(__name__)

_RECORD_LIST_KEYS = ("list", "records", "items", "rows")


class KieProviderClient(ProviderRepository):
    """
    httpx client for the generation provider's task-status surfaces.

    Every request is sequential. A failing candidate is logged and skipped;
    only exhausting all of them is reported to the caller.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.kie.ai",
        history_path: str = "/api/v1/gpt4o-image/record-list",
        history_page_size: int = 20,
        history_max_pages: int = 5,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._history_path = history_path
        self._history_page_size = history_page_size
        self._history_max_pages = history_max_pages
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self._api_key:
            raise ProviderNotConfiguredError()
        return httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=self._timeout,
            transport=self._transport,
        )

    async def query_status(self, task_id: str, kind: MediaKind) -> Any:
        last_error: Exception | None = None
        async with self._client() as client:
            for endpoint in endpoints_for(kind):
                for method in endpoint.methods:
                    try:
                        return await self._try_endpoint(client, endpoint, method, task_id, kind)
                    except ProviderRequestError as exc:
                        logger.info(
                            "Status endpoint candidate failed",
                            extra={
                                "task_id": task_id,
                                "endpoint": exc.endpoint,
                                "method": method,
                                "status_code": exc.status_code,
                                "reason": exc.reason,
                            },
                        )
                        last_error = exc
        raise ProviderExhaustedError(task_id, last_error)

    async def _try_endpoint(
        self,
        client: httpx.AsyncClient,
        endpoint: StatusEndpoint,
        method: str,
        task_id: str,
        kind: MediaKind,
    ) -> Any:
        url = endpoint.url(self._base_url, task_id)
        json_body = {"taskId": task_id} if method == "POST" else None
        payload = await self._request_json(client, method, url, json_body=json_body)
        if not normalize(payload, kind).recognized:
            raise ProviderRequestError(url, "unrecognized response shape")
        logger.info("Status endpoint answered", extra={"task_id": task_id, "endpoint": url, "method": method})
        return payload

    async def _request_json(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await client.request(method, url, json=json_body, params=params)
        except httpx.HTTPError as exc:
            raise ProviderRequestError(url, f"{type(exc).__name__}: {exc}") from exc
        if response.is_error:
            raise ProviderRequestError(url, response.text[:200] or response.reason_phrase, response.status_code)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderRequestError(url, "response is not JSON", response.status_code) from exc
        code = payload.get("code") if isinstance(payload, dict) else None
        if code is not None and code != 200:
            message = payload.get("msg") or payload.get("message") or f"provider code {code}"
            raise ProviderRequestError(url, str(message), code if isinstance(code, int) else None)
        return payload

    async def find_history_record(self, task_id: str) -> dict[str, Any] | None:
        url = f"{self._base_url}{self._history_path}"
        async with self._client() as client:
            for page in range(1, self._history_max_pages + 1):
                params = {"pageNum": page, "pageSize": self._history_page_size}
                try:
                    payload = await self._request_json(client, "GET", url, params=params)
                except ProviderRequestError as exc:
                    logger.warning(
                        "History page fetch failed",
                        extra={"task_id": task_id, "page": page, "reason": exc.reason},
                    )
                    return None
                records = _records_from_page(payload)
                for record in records:
                    if extract_task_id(record) == task_id:
                        logger.info("Found task in record history", extra={"task_id": task_id, "page": page})
                        return record
                if len(records) < self._history_page_size:
                    break
        logger.info("Task not in record history", extra={"task_id": task_id})
        return None

    async def probe_url(self, url: str) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.head(url, follow_redirects=True)
        except httpx.HTTPError as exc:
            logger.debug("URL probe failed", extra={"url": url, "error": str(exc)})
            return False
        return response.is_success


def _records_from_page(payload: Any) -> list[dict[str, Any]]:
    data = payload.get("data") if isinstance(payload, dict) else None
    if isinstance(data, list):
        candidates = data
    elif isinstance(data, dict):
        candidates = next(
            (data[key] for key in _RECORD_LIST_KEYS if isinstance(data.get(key), list)),
            [],
        )
    else:
        candidates = []
    return [record for record in candidates if isinstance(record, dict)]
