from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
import logging
from pydantic import BaseModel, ConfigDict, Field

from config.settings import get_settings
from relay.history import HistoryLog
from relay.session import client_ip, create_session_id, resolve_session_id, utc_timestamp
from relay.webhook import UpstreamUnavailable, build_client, relay_chat, trigger_webcall


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("webhook_relay")

app = FastAPI(title="Webhook Chat Relay", version="1.0.0")

# CORS: wide open for local development, explicit origins otherwise
settings = get_settings()
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
elif settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = Field(default=None, description="User's latest message")
    session_id: Optional[str] = Field(
        default=None,
        alias="sessionId",
        description="Opaque conversation id; minted from the caller IP when omitted",
    )


class WebcallRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")


ClientFactory = Callable[[], httpx.AsyncClient]


def _new_client() -> httpx.AsyncClient:
    return build_client(timeout=get_settings().webhook_timeout)


def get_client_factory() -> ClientFactory:
    """Clients are built only after the body validates; the relay closes them."""
    return _new_client


def get_history_log() -> HistoryLog:
    return HistoryLog(get_settings().history_file)


@app.get("/api/session")
def session(request: Request) -> Dict[str, Any]:
    ip = client_ip(request)
    return {
        "sessionId": create_session_id(ip),
        "ip": ip,
        "timestamp": utc_timestamp(),
    }


@app.post("/api/webcall")
async def webcall(
    request: Request,
    body: Optional[WebcallRequest] = None,
    new_client: ClientFactory = Depends(get_client_factory),
):
    ip = client_ip(request)
    started_at = utc_timestamp()
    logger.info("[%s] Webcall triggered from IP: %s", started_at, ip)

    session_id = resolve_session_id(body.session_id if body else None, ip)
    try:
        status_code, payload = await trigger_webcall(new_client(), session_id, ip, started_at)
    except UpstreamUnavailable as exc:
        logger.error("Webcall error: %s", exc.detail)
        return JSONResponse(status_code=500, content={"error": "Failed to trigger webcall"})
    return JSONResponse(status_code=status_code, content=payload)


@app.post("/api/chat")
async def chat(
    request: Request,
    body: Optional[ChatRequest] = None,
    new_client: ClientFactory = Depends(get_client_factory),
    history: HistoryLog = Depends(get_history_log),
) -> Response:
    started_at = utc_timestamp()
    message = body.message if body else None
    if not message:
        return JSONResponse(status_code=400, content={"error": "Message is required"})

    session_id = resolve_session_id(body.session_id, client_ip(request))
    logger.info("[%s] Sending to webhook (session=%s): %s...", started_at, session_id, message[:50])

    try:
        return await relay_chat(new_client(), history, message, session_id, started_at)
    except UpstreamUnavailable as exc:
        logger.error("Webhook unreachable: %s", exc.detail)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal Server Error", "details": exc.detail},
        )


@app.get("/health")
def health():
    return {"status": "ok"}


# Mounted last so the API routes above take precedence over the chat UI files
if settings.static_dir and Path(settings.static_dir).is_dir():
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
