from __future__ import annotations

import hashlib
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from starlette.requests import Request

from config.settings import get_settings


def utc_timestamp() -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def create_session_id(seed: Optional[str] = None, prefix: Optional[str] = None) -> str:
    if prefix is None:
        prefix = get_settings().session_prefix
    millis = str(int(time.time() * 1000))
    material = (seed or uuid.uuid4().hex) + millis
    fingerprint = hashlib.md5(material.encode("utf-8")).hexdigest()[:8]
    return f"{prefix}{fingerprint}_{millis}"


def resolve_session_id(supplied: Optional[str], seed: Optional[str] = None) -> str:
    if isinstance(supplied, str) and supplied:
        return supplied
    return create_session_id(seed)
