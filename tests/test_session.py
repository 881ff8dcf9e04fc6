"""Session identifiers and client address resolution."""
from __future__ import annotations

import re

from starlette.requests import Request

from relay.session import client_ip, create_session_id, resolve_session_id, utc_timestamp


def _request(headers=None, client=("198.51.100.4", 5050)) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "client": client})


def test_create_session_id_shape() -> None:
    session_id = create_session_id("198.51.100.4", prefix="sg_")
    assert re.fullmatch(r"sg_[0-9a-f]{8}_\d{13}", session_id)


def test_create_session_id_without_seed_uses_configured_prefix() -> None:
    assert create_session_id().startswith("sg_")


def test_resolve_keeps_supplied_id() -> None:
    assert resolve_session_id("sg_mine_1", "1.2.3.4") == "sg_mine_1"


def test_resolve_mints_when_empty() -> None:
    assert resolve_session_id("", "1.2.3.4") != ""
    assert resolve_session_id(None).startswith("sg_")


def test_client_ip_prefers_forwarded_for() -> None:
    request = _request({"X-Forwarded-For": " 203.0.113.9 , 10.0.0.2", "X-Real-IP": "10.0.0.3"})
    assert client_ip(request) == "203.0.113.9"


def test_client_ip_falls_back_to_real_ip_then_peer() -> None:
    assert client_ip(_request({"X-Real-IP": "10.0.0.3"})) == "10.0.0.3"
    assert client_ip(_request()) == "198.51.100.4"
    assert client_ip(_request(client=None)) == "unknown"


def test_utc_timestamp_format() -> None:
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", utc_timestamp())
