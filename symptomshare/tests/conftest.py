import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure tests use an in-memory SQLite DB, generic JSON columns and no LLM key
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("FORCE_GENERIC_JSON", "1")
os.environ["GEMINI_API_KEY"] = ""

# Ensure the project root is on sys.path so `import symptomshare` works when
# running pytest from the repository root.
ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from symptomshare.app import app
from symptomshare.auth.deps import CurrentUser, get_current_user
from symptomshare.config import get_settings
from symptomshare.db.session import Base, get_db
from symptomshare.services import gemini
from symptomshare.services.gemini import GeminiError


# In-memory SQLite shared across connections
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def create_schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = _override_get_db
app.dependency_overrides[get_current_user] = lambda: CurrentUser(id="user-1", email="u@example.com")


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    app.state.limiter.reset()
    yield


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def as_user():
    """Switch the authenticated user for subsequent requests."""
    def _switch(user_id: str):
        app.dependency_overrides[get_current_user] = lambda: CurrentUser(id=user_id)
    yield _switch
    app.dependency_overrides[get_current_user] = lambda: CurrentUser(id="user-1", email="u@example.com")


@pytest.fixture
def llm_enabled(monkeypatch):
    """Pretend a Gemini key is configured for code that reads settings itself."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    get_settings.cache_clear()
    yield get_settings()


@pytest.fixture
def fake_gemini(monkeypatch):
    """Replace the Gemini client with scripted replies.

    Each call consumes the next reply; the last one repeats. A reply that is
    an exception instance is raised instead of returned.
    """
    state = SimpleNamespace(replies=[], calls=[])

    async def fake_generate_text(prompt, *, settings=None, json_output=False):
        state.calls.append({"prompt": prompt, "json_output": json_output})
        if not state.replies:
            raise GeminiError("no scripted reply")
        reply = state.replies.pop(0) if len(state.replies) > 1 else state.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(gemini, "generate_text", fake_generate_text)
    return state
