"""
HTTP client the desktop side uses to talk to the sync backend.

Thin wrapper over requests with timeouts. A 401 raises Unauthorized so the
editor can ask the user to sign in again; any other failure raises SyncError.
"""
from typing import Any
from urllib.parse import quote

import requests

from errors import Unauthorized

DEFAULT_TIMEOUT = (5, 30)  # connect 5s, read 30s


class SyncError(Exception):
    """Request failed: transport error or non-2xx response."""

    def __init__(self, msg: str, status_code: int | None = None):
        self.msg = msg
        self.status_code = status_code
        super().__init__(msg)


class SyncClient:
    def __init__(self, base_url: str, token: str | None = None, timeout=DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def _request(self, method: str, path: str, *, auth: bool = True, **kwargs: Any) -> Any:
        headers = kwargs.pop("headers", {})
        if auth:
            if not self.token:
                raise Unauthorized("Not signed in")
            headers["Authorization"] = f"Bearer {self.token}"
        kwargs.setdefault("timeout", self.timeout)
        try:
            resp = requests.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        except requests.RequestException as e:
            raise SyncError(f"Could not reach sync server: {e}") from e

        if resp.status_code == 401:
            raise Unauthorized(self._detail(resp) or "Unauthorized")
        if resp.status_code >= 400:
            raise SyncError(self._detail(resp) or f"HTTP {resp.status_code}", resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise SyncError("Invalid JSON from sync server", resp.status_code) from e

    @staticmethod
    def _detail(resp) -> str | None:
        try:
            data = resp.json()
        except ValueError:
            return None
        if isinstance(data, dict):
            return data.get("detail") or data.get("error")
        return None

    def register(self, email: str, password: str) -> dict:
        data = self._request("POST", "/api/register", auth=False, json={"email": email, "password": password})
        self.token = data["token"]
        return data

    def login(self, email: str, password: str) -> dict:
        """Sign in and keep the token for later calls."""
        data = self._request("POST", "/api/login", auth=False, json={"email": email, "password": password})
        self.token = data["token"]
        return data

    def health(self) -> dict:
        return self._request("GET", "/api/health", auth=False)

    def list_scripts(self) -> list[dict]:
        return self._request("GET", "/api/scripts")

    def save_script(self, script: dict) -> dict:
        return self._request("POST", "/api/scripts", json=script)

    def delete_script(self, script_id: str) -> dict:
        return self._request("DELETE", f"/api/scripts/{quote(script_id, safe='')}")

    def push_all(self, scripts: list[dict]) -> dict:
        """Upload every local script; returns {syncedCount, errors?}."""
        return self._request("POST", "/api/scripts/sync", json={"scripts": scripts})
