"""
Pytest configuration and fixtures for Briefcast tests.
"""

import os
import sys
from datetime import timedelta
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("GEMINI_API_KEY", "")


# ============================================================
# Database Fixtures
# ============================================================

@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite database per test."""
    from briefcast.persistence import init_db

    engine = init_db(f"sqlite:///{tmp_path / 'test.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    from briefcast.persistence import create_session_factory

    return create_session_factory(db_engine)


@pytest.fixture
def repository(session_factory):
    from briefcast.persistence import BriefingRepository

    return BriefingRepository(session_factory, timezone="Asia/Seoul")


@pytest.fixture
def credential_store(session_factory):
    from briefcast.connectors import CredentialStore

    return CredentialStore(session_factory)


# ============================================================
# Settings
# ============================================================

@pytest.fixture
def settings(tmp_path):
    """Settings isolated from any local .env file."""
    from briefcast.config.settings import Settings

    return Settings(
        _env_file=None,
        gemini_api_key="",
        database_url=f"sqlite:///{tmp_path / 'app.db'}",
        supabase_url=None,
        supabase_service_key=None,
        google_client_id="google-client",
        google_client_secret="google-secret",
        transcript_pause_seconds=0,
    )


# ============================================================
# Fakes
# ============================================================

class FakeTokenClient:
    """Stands in for OAuthTokenClient; counts refreshes."""

    def __init__(self, grant=None, refreshable=True, delay=0.0):
        self.grant = grant
        self.refreshable = refreshable
        self.delay = delay
        self.refresh_calls = 0

    def can_refresh(self, provider):
        return self.refreshable

    async def refresh(self, provider, refresh_token):
        import asyncio

        self.refresh_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.grant


class FakeLLM:
    """
    Scripted text model. ``responder(prompt)`` returns text or raises.
    Every prompt is recorded.
    """

    def __init__(self, responder=None):
        self.responder = responder or (lambda prompt: "Host: Hello there.")
        self.prompts = []

    async def complete(self, prompt, grounded=False, temperature=0.7):
        self.prompts.append(prompt)
        return self.responder(prompt)


class FakeStorage:
    def __init__(self, fail=False):
        self.fail = fail
        self.uploads = []

    async def put(self, data, name, content_type):
        from briefcast.errors import PersistenceError

        if self.fail:
            raise PersistenceError("upload failed")
        self.uploads.append((name, content_type, len(data)))
        return f"https://storage.example.com/{name}"


class FakeSpeech:
    def __init__(self, data=b"\x00\x01" * 24000, mime_type="audio/L16;codec=pcm;rate=24000"):
        self.data = data
        self.mime_type = mime_type
        self.scripts = []

    async def synthesize(self, script):
        self.scripts.append(script)
        return self.data, self.mime_type


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_speech():
    return FakeSpeech()


@pytest.fixture
def make_credential():
    """Factory for credentials expiring ``expires_in`` seconds from now."""
    from briefcast.models import Credential, Provider
    from briefcast.utils.clock import utcnow

    def _make(provider=Provider.GMAIL, expires_in=3600, refresh_token="refresh-1", access_token="access-1"):
        expires_at = utcnow() + timedelta(seconds=expires_in) if expires_in is not None else None
        return Credential(
            provider=provider,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )

    return _make


@pytest.fixture
def sample_script():
    from briefcast.models import ScriptDocument, ScriptSection

    return ScriptDocument(sections=(
        ScriptSection(label="opening", text="Host: Good morning!"),
        ScriptSection(label="schedule", text="Host: You have a standup at ten.\nGuest: Busy day."),
        ScriptSection(label="closing", text="Host: That's all."),
    ))
