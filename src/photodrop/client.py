"""HTTP client for the photodrop API with an explicit session store.

The access credential lives in a ``SessionStore`` passed to the client, not
in module state, so callers choose where it persists (memory, a file, or
anything with ``get``/``set``/``clear``). The refresh credential stays in
the HTTP client's cookie jar, as the server only ever sets it as an
HTTP-only cookie.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class SessionStore:
    """Where the client keeps its access credential."""

    def get(self) -> Optional[str]:
        raise NotImplementedError

    def set(self, access_token: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    def __init__(self, access_token: Optional[str] = None):
        self._access_token = access_token

    def get(self) -> Optional[str]:
        return self._access_token

    def set(self, access_token: str) -> None:
        self._access_token = access_token

    def clear(self) -> None:
        self._access_token = None


class FileSessionStore(SessionStore):
    """Persists the access credential as JSON so it survives restarts."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def get(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable session file %s", self.path)
            return None
        return data.get("accessToken")

    def set(self, access_token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"accessToken": access_token}))

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


class PhotodropClient:
    """Thin API client that attaches the bearer credential and refreshes on 401.

    Args:
        http: httpx client (or FastAPI TestClient) pointed at the API
        store: where the access credential is kept
    """

    _NO_RETRY_PATHS = ("/auth/refresh", "/auth/verify-magic-link", "/auth/logout", "/auth/select-group")

    def __init__(self, http: httpx.Client, store: Optional[SessionStore] = None):
        self.http = http
        self.store = store or MemorySessionStore()

    def _headers(self) -> Dict[str, str]:
        access_token = self.store.get()
        if not access_token:
            return {}
        return {"Authorization": f"Bearer {access_token}"}

    def _apply_session(self, data: Dict[str, Any]) -> Dict[str, Any]:
        access_token = data.get("accessToken")
        if access_token:
            self.store.set(access_token)
        elif "accessToken" in data:
            self.store.clear()
        return data

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, refreshing the session once if it comes back 401."""
        headers = {**kwargs.pop("headers", {}), **self._headers()}
        response = self.http.request(method, path, headers=headers, **kwargs)
        if response.status_code != 401 or path in self._NO_RETRY_PATHS:
            return response
        if not self.refresh():
            return response
        headers.update(self._headers())
        return self.http.request(method, path, headers=headers, **kwargs)

    def refresh(self) -> bool:
        """Swap the refresh cookie for a new access credential."""
        response = self.http.post("/auth/refresh")
        if response.status_code != 200:
            logger.info("Session refresh failed with status %s", response.status_code)
            self.store.clear()
            return False
        data = self._apply_session(response.json())
        return bool(data.get("accessToken"))

    # -----------------------------------------------------------------------
    # auth flow
    # -----------------------------------------------------------------------

    def send_login_link(self, email: str) -> httpx.Response:
        return self.http.post("/auth/send-login-link", json={"email": email})

    def verify_magic_link(self, token: str, name: Optional[str] = None) -> Dict[str, Any]:
        """Consume a magic link. Check ``needsName`` and call again with a name."""
        body: Dict[str, Any] = {"token": token}
        if name is not None:
            body["name"] = name
        response = self.http.post("/auth/verify-magic-link", json=body)
        response.raise_for_status()
        data = response.json()
        if data.get("needsName"):
            return data
        return self._apply_session(data)

    def select_group(self, group_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"groupId": group_id}
        if user_id is not None:
            body["userId"] = user_id
        response = self.http.post("/auth/select-group", json=body)
        response.raise_for_status()
        return self._apply_session(response.json())

    def switch_group(self, group_id: str) -> Dict[str, Any]:
        response = self.request("POST", "/auth/switch-group", json={"groupId": group_id})
        response.raise_for_status()
        return self._apply_session(response.json())

    def logout(self) -> None:
        try:
            self.http.post("/auth/logout", headers=self._headers())
        finally:
            self.store.clear()

    def me(self) -> Dict[str, Any]:
        response = self.request("GET", "/users/me")
        response.raise_for_status()
        return response.json()
