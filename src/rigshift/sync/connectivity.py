"""Network reachability flag."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class Connectivity:
    """Holds whether the server is currently reachable.

    The flag decides whether new ledger events are marked synced right
    away or queued.  Callers flip it directly (``set_online``) or refresh it
    with a health check (``probe``).  Instances are callable so they can be
    passed wherever an ``is_online`` callback is expected.
    """

    def __init__(self, online: bool = True, server_url: str | None = None) -> None:
        self.online = online
        self.server_url = server_url.rstrip("/") if server_url else None

    def __call__(self) -> bool:
        return self.online

    def set_online(self, online: bool) -> None:
        if online != self.online:
            logger.info("Connectivity changed: %s", "online" if online else "offline")
        self.online = online

    def probe(self, timeout: float = 2.0, client: httpx.Client | None = None) -> bool:
        """GET ``<server_url>/health`` and update the flag from the result."""
        if not self.server_url:
            self.set_online(False)
            return False
        url = f"{self.server_url}/health"
        try:
            if client is not None:
                response = client.get(url, timeout=timeout)
            else:
                response = httpx.get(url, timeout=timeout)
            reachable = response.status_code == 200
        except httpx.HTTPError as exc:
            logger.debug("Health check failed: %s", exc)
            reachable = False
        self.set_online(reachable)
        return reachable
