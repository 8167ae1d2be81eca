import json

import httpx
import pytest

from studia.client.chunked_store import ChunkedSecureStore, MemorySecureStorage, count_key
from studia.client.session import NotSignedInError, SessionStore, StudiaClient

# Real session payloads carry two JWTs plus user metadata and run past 2 KB
BIG_SESSION = {
    "access_token": "a" * 1500,
    "refresh_token": "r" * 900,
    "user": {"id": "u1", "email": "student@example.com"},
}


@pytest.fixture()
def backend():
    return MemorySecureStorage()


@pytest.fixture()
def sessions(backend):
    return SessionStore(ChunkedSecureStore(backend))


def test_session_round_trip_through_chunks(sessions, backend):
    sessions.save(BIG_SESSION)
    assert backend.get_item(count_key(sessions.storage_key)) is not None
    assert sessions.load() == BIG_SESSION


def test_clear_removes_session(sessions, backend):
    sessions.save(BIG_SESSION)
    sessions.clear()
    assert sessions.load() is None
    assert backend.keys() == []


def test_corrupt_session_loads_as_none(sessions, backend):
    backend.set_item(sessions.storage_key, "{not json")
    assert sessions.load() is None


def test_access_token_requires_session(sessions):
    with pytest.raises(NotSignedInError):
        sessions.access_token()


def test_client_sends_bearer_and_body(sessions):
    sessions.save(BIG_SESSION)
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "exam": []})

    client = StudiaClient(
        "http://studia.test/", sessions, http_client=httpx.Client(transport=httpx.MockTransport(handler))
    )
    result = client.generate_exam("u1/exams/1.pdf", "notes.pdf")

    assert result == {"success": True, "exam": []}
    assert seen["url"] == "http://studia.test/api/generate-exam"
    assert seen["auth"] == f"Bearer {BIG_SESSION['access_token']}"
    assert seen["body"] == {"storagePath": "u1/exams/1.pdf", "fileName": "notes.pdf", "userId": "u1"}


def test_client_without_session_makes_no_request(sessions):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    client = StudiaClient(
        "http://studia.test", sessions, http_client=httpx.Client(transport=httpx.MockTransport(handler))
    )
    with pytest.raises(NotSignedInError):
        client.analyze_material("u1/doc.pdf", "doc.pdf")
    assert calls == []


def test_client_returns_failure_envelope(sessions):
    sessions.save(BIG_SESSION)
    envelope = {"success": False, "error": "Download failed: HTTP 404", "errorType": "download_failed"}
    client = StudiaClient(
        "http://studia.test",
        sessions,
        http_client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=envelope))),
    )
    assert client.analyze_material("u1/doc.pdf", "doc.pdf") == envelope
