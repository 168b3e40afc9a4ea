from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from studio_crm.auth.verify import auth_dependency
from studio_crm.config import Settings
from studio_crm.datastore import InMemoryDataStore
from studio_crm.main import create_app

WEBHOOK_URL = "https://hooks.example.com/notify"


@pytest.fixture
def auth_override():
    def _override():
        return {
            "sub": "user-123",
            "email": "designer@example.com",
            "user_metadata": {"name": "王小明"},
        }

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        LOG_LEVEL="WARNING",
        DATASTORE_BACKEND="memory",
        NOTIFY_WEBHOOK_URL=WEBHOOK_URL,
        OPENAI_API_KEY=None,
        ATTRIBUTION_BASELINE_COUNT=858,
        ATTRIBUTION_BASELINE_TIMESTAMP_MS=1767196800000,
    )


@pytest.fixture
def store():
    return InMemoryDataStore()


def _connection(
    external_id: str,
    timestamp: int | None = 1767200000000,
    is_bound: bool = False,
    is_blocked: bool = False,
    source: str = "",
    display_name: str = "",
) -> dict:
    return {
        "id": external_id,
        "UserId": external_id,
        "lineDisplayName": display_name or f"name-{external_id[-4:]}",
        "linePictureUrl": "",
        "isBound": is_bound,
        "isBlocked": is_blocked,
        "timestamp": timestamp,
        "source": source,
    }


def _contact(
    contact_id: str,
    name: str = "陳先生",
    external_id: str = "",
    phone: str = "0912345678",
    created_at: int = 1767200000000,
) -> dict:
    return {
        "id": contact_id,
        "name": name,
        "phone": phone,
        "UserId": external_id,
        "lineDisplayName": "",
        "linePictureUrl": "",
        "tags": [],
        "address": "",
        "createdAt": created_at,
    }


@pytest.fixture
def make_connection():
    return _connection


@pytest.fixture
def make_contact():
    return _contact


def external_id(n: int) -> str:
    """A well-formed 33 character chat-platform user id."""
    return "U" + f"{n:032x}"


@pytest.fixture
def make_external_id():
    return external_id


@pytest.fixture
def webhook_calls():
    return []


@pytest.fixture
def webhook_transport(webhook_calls):
    def handler(request: httpx.Request) -> httpx.Response:
        webhook_calls.append(request)
        return httpx.Response(200, json={"ok": True})

    return httpx.MockTransport(handler)


@pytest.fixture
def fake_ai_client():
    def _build(content: str | None):
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
            usage=None,
        )
        client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock(return_value=response)))
        )
        return client

    return _build


@pytest.fixture
def build_client(test_settings, store, webhook_transport, apply_auth_override):
    """Factory returning a TestClient (lifespan not yet entered) around the shared store."""

    def _build(ai_client=None, authenticated: bool = True) -> TestClient:
        app = create_app(
            test_settings, store=store, webhook_transport=webhook_transport, ai_client=ai_client
        )
        if authenticated:
            apply_auth_override(app)
        return TestClient(app)

    return _build
