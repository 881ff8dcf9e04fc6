"""
Shared fixtures for the relay tests.

The webhook is never contacted: every test gets a ``FakeWebhook`` whose
handler sits behind ``httpx.MockTransport`` and is swapped into the app via
``dependency_overrides``. The history log is redirected into ``tmp_path``.
"""
from __future__ import annotations

import json
from typing import Callable, List, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.main import app, get_client_factory
from config.settings import get_settings


class FakeWebhook:
    """Records every outbound request and answers with ``respond``."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.clients: List[httpx.AsyncClient] = []
        self.respond: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json={"response": "ok"})
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def last_json(self) -> Optional[dict]:
        if not self.requests:
            return None
        return json.loads(self.requests[-1].content)

    def client(self) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        self.clients.append(client)
        return client


@pytest.fixture
def history_path(tmp_path, monkeypatch):
    path = tmp_path / "chat_history.json"
    monkeypatch.setenv("HISTORY_FILE", str(path))
    monkeypatch.setenv("WEBHOOK_URL", "https://hooks.test/webhook/chat")
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


@pytest.fixture
def webhook(history_path):
    fake = FakeWebhook()
    app.dependency_overrides[get_client_factory] = lambda: fake.client
    yield fake
    app.dependency_overrides.pop(get_client_factory, None)


@pytest_asyncio.fixture
async def client(webhook):
    """Async httpx client using ASGI transport — no live server needed."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def saved_history(history_path):
    """Callable returning the records currently on disk."""

    def read() -> list:
        if not history_path.exists():
            return []
        return json.loads(history_path.read_text(encoding="utf-8"))

    return read
