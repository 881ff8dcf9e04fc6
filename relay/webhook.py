"""Single outbound call to the chat webhook and relay of its reply."""
from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import httpx
from starlette.background import BackgroundTask
from starlette.responses import PlainTextResponse, Response, StreamingResponse

from config.settings import get_settings
from relay.extract import extract_line, extract_reply
from relay.history import ChatExchange, HistoryLog
from relay.lines import LineBuffer


logger = logging.getLogger(__name__)

REQUEST_TYPE_HEADER = "X-Request-Type"
WEBCALL_REQUEST_TYPE = "webcall"
UPSTREAM_ERROR_TEMPLATE = "Sorry, the webhook returned an error ({status}). Please try again later."
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


class UpstreamUnavailable(Exception):
    """The webhook could not be reached (DNS, connect, TLS, read failure)."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


def build_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout, follow_redirects=True)


async def _open(
    client: httpx.AsyncClient,
    payload: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
) -> httpx.Response:
    request = client.build_request(
        "POST", get_settings().webhook_url, json=payload, headers=headers
    )
    try:
        return await client.send(request, stream=True)
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(str(exc) or exc.__class__.__name__) from exc


class ReplyStream:
    """Forward a streamed webhook reply line by line while keeping a copy.

    ``completed`` only turns true once the upstream body has been read to
    the end, so an interrupted stream is never written to the history.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        response: httpx.Response,
        fields: Optional[Sequence[str]] = None,
    ) -> None:
        self._client = client
        self._response = response
        self._fields = fields
        self._parts: List[str] = []
        self.completed = False

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def _forward(self, line: str) -> str:
        piece = extract_line(line, self._fields)
        self._parts.append(piece)
        return piece

    async def chunks(self) -> AsyncIterator[str]:
        buffer = LineBuffer()
        try:
            async for text in self._response.aiter_text():
                for line in buffer.feed(text):
                    yield self._forward(line)
            for line in buffer.flush():
                yield self._forward(line)
            self.completed = True
        except httpx.HTTPError as exc:
            logger.error(
                "Webhook stream broke off after %s chars: %s", len(self.text), exc
            )
        finally:
            await self._response.aclose()
            await self._client.aclose()


def _save_stream(history: HistoryLog, stream: ReplyStream, exchange: Dict[str, str]) -> None:
    if not stream.completed:
        logger.warning("Skipping history for incomplete stream (session=%s)", exchange["session_id"])
        return
    history.append(ChatExchange(bot_response=stream.text, **exchange))


async def relay_chat(
    client: httpx.AsyncClient,
    history: HistoryLog,
    message: str,
    session_id: str,
    started_at: str,
) -> Response:
    """Send one chat message upstream and build the caller-facing response.

    The relay takes ownership of ``client`` and closes it once the reply has
    been fully relayed. Raises ``UpstreamUnavailable`` when the webhook
    cannot be reached; nothing is logged to history in that case.
    """
    payload = {"message": message, "sessionId": session_id, "timestamp": started_at}
    exchange = {"timestamp": started_at, "session_id": session_id, "user_message": message}

    try:
        response = await _open(client, payload)
    except UpstreamUnavailable:
        await client.aclose()
        raise

    content_type = response.headers.get("content-type", "")
    if response.is_success and "application/json" not in content_type:
        stream = ReplyStream(client, response)
        return StreamingResponse(
            stream.chunks(),
            media_type="text/plain",
            headers=STREAM_HEADERS,
            background=BackgroundTask(_save_stream, history, stream, exchange),
        )

    try:
        body = await response.aread()
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(str(exc) or exc.__class__.__name__) from exc
    finally:
        await response.aclose()
        await client.aclose()

    if not response.is_success:
        logger.error(
            "Webhook responded with %s: %s", response.status_code, response.reason_phrase
        )
        logger.error("Error details: %s", response.text)
        bot_response = f"Error: {response.status_code}"
        reply = UPSTREAM_ERROR_TEMPLATE.format(status=response.status_code)
    else:
        bot_response = reply = _decode_whole(body, response)

    return PlainTextResponse(
        reply,
        background=BackgroundTask(
            history.append, ChatExchange(bot_response=bot_response, **exchange)
        ),
    )


def _decode_whole(body: bytes, response: httpx.Response) -> str:
    try:
        data = json.loads(body)
    except ValueError:
        logger.warning("Webhook declared %s but sent invalid JSON; relaying raw text",
                       response.headers.get("content-type"))
        return response.text
    return extract_reply(data)


async def trigger_webcall(
    client: httpx.AsyncClient,
    session_id: str,
    ip: str,
    started_at: str,
) -> Tuple[int, Dict[str, Any]]:
    """Notify the webhook that a web call was requested; nothing is logged."""
    payload = {
        "type": WEBCALL_REQUEST_TYPE,
        "sessionId": session_id,
        "clientIP": ip,
        "timestamp": started_at,
    }
    async with client:
        try:
            response = await _open(
                client, payload, headers={REQUEST_TYPE_HEADER: WEBCALL_REQUEST_TYPE}
            )
            try:
                await response.aread()
            finally:
                await response.aclose()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(str(exc) or exc.__class__.__name__) from exc

    if not response.is_success:
        logger.error("Webcall webhook error: %s", response.status_code)
        return response.status_code, {"error": "Webhook error"}
    return 200, {"success": True, "message": "Webcall triggered", "data": response.text}
