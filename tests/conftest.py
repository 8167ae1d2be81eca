import os
import tempfile

# Configure before anything imports studia.core.config
_DB_DIR = tempfile.mkdtemp(prefix="studia-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test_studia.db"
os.environ["LOG_TO_FILE"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "development"
for _key in (
    "SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_JWT_SECRET",
    "GEMINI_API_KEY", "ANTHROPIC_API_KEY", "LLAMA_CLOUD_API_KEY",
):
    os.environ[_key] = ""

import pytest
from fastapi.testclient import TestClient

from studia.core.errors import DownloadError, ProviderError, UnauthorizedError
from studia.core.security import VerifiedIdentity, extract_bearer_token


def make_quiz_item(n: int, hard: bool = False) -> dict:
    prefix = "Hard question" if hard else "Question"
    return {
        "question": f"{prefix} {n}?",
        "options": ["A", "B", "C", "D"],
        "correctIndex": n % 4,
        "explanation": f"Because {n}",
    }


def make_analysis_payload(count: int = 5) -> dict:
    return {
        "summary": "Photosynthesis turns light into chemical energy.",
        "keyConceptsList": [{"term": f"Term {i}", "definition": f"Definition {i}"} for i in range(count)],
        "flashcards": [{"question": f"Card {i}?", "answer": f"Answer {i}"} for i in range(count)],
        "quiz": [make_quiz_item(i) for i in range(count)],
        "hardQuiz": [make_quiz_item(i, hard=True) for i in range(count)],
    }


class FakeStorage:
    def __init__(self, files: dict[str, bytes] | None = None):
        self.files = files or {}
        self.calls = []

    async def download(self, storage_path: str) -> bytes:
        self.calls.append(storage_path)
        if storage_path not in self.files:
            raise DownloadError(f"Download failed: {storage_path} not found")
        return self.files[storage_path]


class FakeGemini:
    """Answers per model: a string is returned, an exception instance is raised."""

    def __init__(self, answers: dict | None = None, default=None):
        self.answers = answers or {}
        self.default = default
        self.calls = []

    async def generate_from_document(self, model, data, mime_type, prompt, **kwargs):
        self.calls.append({"model": model, "mime_type": mime_type, "prompt": prompt, **kwargs})
        answer = self.answers.get(model, self.default)
        if answer is None:
            raise ProviderError(f"{model} failed 503: unavailable")
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeExtractor:
    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls = 0

    async def extract(self, data: bytes, file_name: str) -> str:
        self.calls += 1
        if self.error:
            raise self.error
        return self.text


class FakeSecondary:
    model = "claude-test"

    def __init__(self, answer: str = "", error: Exception | None = None):
        self.answer = answer
        self.error = error
        self.prompts = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.answer


class FakeVerifier:
    """Maps bearer tokens to user ids."""

    def __init__(self, tokens: dict[str, str]):
        self.tokens = tokens

    async def verify(self, authorization):
        token = extract_bearer_token(authorization)
        if token not in self.tokens:
            raise UnauthorizedError("Invalid or expired session token")
        return VerifiedIdentity(user_id=self.tokens[token])


@pytest.fixture(scope="session")
def app():
    import main as main_module
    return main_module.app


@pytest.fixture()
def db_session(app):
    from studia.db.database import SessionLocal
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def verifier(app):
    from studia.api.deps import get_identity_verifier

    fake = FakeVerifier({"token-u1": "u1", "token-u2": "u2"})
    app.dependency_overrides[get_identity_verifier] = lambda: fake
    return fake
