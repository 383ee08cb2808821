"""Delivery of ledger events to the server."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from rigshift.config import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

EVENTS_ENDPOINT = "/api/events"


class EventTransport(Protocol):
    """Sends one outbound event record; True means the server acknowledged it."""

    def send(self, record: dict[str, Any]) -> bool: ...


class HttpTransport:
    """POSTs each event record as JSON to ``<server_url>/api/events``.

    Any 2xx response is an acknowledgement.  Network errors and non-2xx
    responses are reported as a failed delivery, never raised.
    """

    def __init__(
        self,
        server_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self._http_client = client

    def _get_http_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=self.timeout)
        return self._http_client

    def send(self, record: dict[str, Any]) -> bool:
        url = f"{self.server_url}{EVENTS_ENDPOINT}"
        try:
            response = self._get_http_client().post(url, json=record)
        except httpx.HTTPError as exc:
            logger.warning("Could not deliver event %s: %s", record.get("id"), exc)
            return False
        if not response.is_success:
            logger.warning(
                "Server rejected event %s with HTTP %d", record.get("id"), response.status_code
            )
            return False
        return True

    def close(self) -> None:
        """Close HTTP client."""
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
