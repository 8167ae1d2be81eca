"""
Client-side session persistence and a small API client for the pipeline endpoints.
"""
import json

import httpx

from studia.client.chunked_store import ChunkedSecureStore
from studia.core.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SESSION_KEY = "studia.auth.session"


class NotSignedInError(Exception):
    """No usable session is stored on this device."""
    pass


class SessionStore:
    """Persists the auth session (tokens + user) as JSON through a chunked store."""

    def __init__(self, store: ChunkedSecureStore, storage_key: str = DEFAULT_SESSION_KEY):
        self.store = store
        self.storage_key = storage_key

    def save(self, session: dict) -> None:
        self.store.set_item(self.storage_key, json.dumps(session, separators=(",", ":")))

    def load(self) -> dict | None:
        raw = self.store.get_item(self.storage_key)
        if raw is None:
            return None
        try:
            session = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored session is corrupted, ignoring it")
            return None
        return session if isinstance(session, dict) else None

    def clear(self) -> None:
        self.store.remove_item(self.storage_key)

    def access_token(self) -> str:
        session = self.load()
        token = (session or {}).get("access_token")
        if not token:
            raise NotSignedInError("No active session. Please log in again.")
        return token


class StudiaClient:
    """Calls the analysis and exam endpoints with the stored session's bearer token."""

    def __init__(
        self,
        base_url: str,
        session_store: SessionStore,
        http_client: httpx.Client | None = None,
        timeout: float = 150.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_store = session_store
        self.http_client = http_client or httpx.Client(timeout=timeout)

    def _post(self, path: str, storage_path: str, file_name: str) -> dict:
        token = self.session_store.access_token()
        session = self.session_store.load() or {}
        body = {"storagePath": storage_path, "fileName": file_name}
        user_id = (session.get("user") or {}).get("id")
        if user_id:
            body["userId"] = user_id

        resp = self.http_client.post(
            f"{self.base_url}{path}",
            json=body,
            headers={"Authorization": f"Bearer {token}"},
        )
        resp.raise_for_status()
        return resp.json()

    def analyze_material(self, storage_path: str, file_name: str) -> dict:
        return self._post("/api/analyze-material", storage_path, file_name)

    def generate_exam(self, storage_path: str, file_name: str) -> dict:
        return self._post("/api/generate-exam", storage_path, file_name)

    def close(self) -> None:
        self.http_client.close()
