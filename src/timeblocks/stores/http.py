"""REST event store over httpx.

Endpoints, relative to ``base_url``::

    GET    /events          -> [{"id", "title", "start", "end", "hours"}, ...]
    POST   /events          -> {"id": "..."}
    PUT    /events/{id}
    DELETE /events/{id}
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from timeblocks.config import StoreConfig
from timeblocks.errors import EventStoreError, EventStoreRequestError, sanitize_message
from timeblocks.interfaces import EventStore
from timeblocks.models import EventRecord

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def _safe_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("message", "error", "body"):
            value = payload.get(key)
            if isinstance(value, dict):
                value = value.get("message") or value.get("body")
            if isinstance(value, str) and value.strip():
                return sanitize_message(value)

    raw_text = response.text.strip()
    if raw_text:
        return sanitize_message(raw_text)
    return f"Request failed with status {response.status_code}"


def _encode_id(event_id: str) -> str:
    normalized = event_id.strip()
    if not normalized:
        raise ValueError("event_id must be a non-empty string")
    return quote(normalized, safe="")


class HttpEventStore(EventStore):
    """Event store speaking JSON over HTTP, with optional bearer auth."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    @classmethod
    def from_config(cls, config: StoreConfig) -> HttpEventStore:
        return cls(
            config.base_url,
            api_key=config.api_key,
            timeout_seconds=config.timeout_seconds,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        try:
            response = await self._http_client.request(
                method,
                f"{self._base_url}{path}",
                json=json_body,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise EventStoreError(f"Event store request failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise EventStoreRequestError(
                status_code=response.status_code,
                message=_safe_error_message(response),
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise EventStoreError(f"Event store returned invalid JSON for {operation}") from exc

    async def fetch_all(self) -> list[EventRecord]:
        response = await self._request("GET", "/events")
        payload = self._decode(response, "fetch_all")
        if isinstance(payload, dict):
            payload = payload.get("events")
        if not isinstance(payload, list):
            raise EventStoreError("Event store fetch_all response is not a list of events")

        records: list[EventRecord] = []
        for item in payload:
            try:
                records.append(EventRecord.model_validate(item))
            except ValidationError as exc:
                raise EventStoreError(f"Event store returned a malformed event: {exc}") from exc
        return records

    async def create(self, record: EventRecord) -> str:
        response = await self._request("POST", "/events", json_body=record.to_payload())
        payload = self._decode(response, "create")
        event_id = payload.get("id") if isinstance(payload, dict) else payload
        if isinstance(event_id, int) and not isinstance(event_id, bool):
            event_id = str(event_id)
        if not isinstance(event_id, str) or not event_id.strip():
            raise EventStoreError("Event store create response did not include an id")
        return event_id.strip()

    async def update(self, event_id: str, record: EventRecord) -> None:
        await self._request("PUT", f"/events/{_encode_id(event_id)}", json_body=record.to_payload())

    async def delete(self, event_id: str) -> None:
        """Delete an event; a 404 means it is already gone and counts as success."""
        try:
            await self._request("DELETE", f"/events/{_encode_id(event_id)}")
        except EventStoreRequestError as exc:
            if exc.status_code != 404:
                raise
            logger.debug("delete: event %r already gone; treating as success", event_id)

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()
