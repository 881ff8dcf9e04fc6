from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional, Tuple

from dotenv import load_dotenv


load_dotenv()


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value)


class Settings:
    """Application settings loaded from environment variables.

    Keep all endpoints and config centralized here. Values are read when the
    object is built, so ``get_settings.cache_clear()`` picks up new env vars.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.webhook_url: str = os.getenv(
            "WEBHOOK_URL",
            "https://n8n.smallgrp.com/webhook/af2cb6fe-6c94-45b2-af8e-5214cb72d7c8",
        )
        # No timeout unless configured: a hung upstream hangs the reply.
        self.webhook_timeout: Optional[float] = _optional_float(os.getenv("WEBHOOK_TIMEOUT"))
        self.history_file: str = os.getenv("HISTORY_FILE", "chat_history.json")
        self.session_prefix: str = os.getenv("SESSION_PREFIX", "sg_")
        self.reply_fields: Tuple[str, ...] = tuple(
            _csv(os.getenv("REPLY_FIELDS", "message,response,text,output"))
        )
        self.cors_origins: List[str] = _csv(os.getenv("CORS_ORIGINS", ""))
        self.static_dir: Optional[str] = os.getenv("STATIC_DIR", "static")
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "3000"))

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() in {"dev", "development", "local"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
