from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from relay.session import utc_timestamp


logger = logging.getLogger(__name__)


class ChatExchange(BaseModel):
    """One logged user message and the bot reply it produced."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    timestamp: str = Field(..., description="When the chat request arrived")
    session_id: str = Field(..., alias="sessionId")
    user_message: str = Field(..., alias="userMessage")
    bot_response: str = Field(..., alias="botResponse")
    saved_at: Optional[str] = Field(default=None, alias="savedAt")

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class HistoryLog:
    """Append-only chat log kept as a single JSON array on disk.

    Every append reads the whole file, adds one record and rewrites it.
    Persistence is best-effort: failures are logged and swallowed so they
    never reach the chat caller. Appends are serialized within this process
    only; separate processes sharing the file can still drop records.
    """

    _lock = threading.Lock()

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def read(self) -> List[Dict[str, Any]]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.error("Error reading history file %s: %s", self.path, exc)
            return []
        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Error parsing history file %s: %s", self.path, exc)
            return []
        if not isinstance(data, list):
            logger.error("History file %s does not hold a JSON array; starting over", self.path)
            return []
        return data

    def append(self, exchange: ChatExchange) -> bool:
        record = exchange.model_copy(update={"saved_at": utc_timestamp()}).to_record()
        with self._lock:
            history = self.read()
            history.append(record)
            try:
                if self.path.parent and not self.path.parent.exists():
                    self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(
                    json.dumps(history, indent=2, ensure_ascii=False), encoding="utf-8"
                )
            except OSError as exc:
                logger.error("Error saving history to %s: %s", self.path, exc)
                return False
        logger.info("History saved (%s entries)", len(history))
        return True
