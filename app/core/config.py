from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str | None
    db_path: str
    webhook_url: str | None
    webhook_path: str
    webhook_secret_token: str | None
    port: int
    draft_ttl_hours: int
    notify_delay_s: float


def load_settings() -> Settings:
    # Supports running with either `.env` present or purely env-driven.
    load_dotenv(override=False)

    bot_token = os.getenv("BOT_TOKEN", "").strip()
    if not bot_token:
        raise RuntimeError("BOT_TOKEN is required (set it in environment or .env).")

    database_url = os.getenv("DATABASE_URL", "").strip() or None

    return Settings(
        bot_token=bot_token,
        database_url=database_url,
        db_path=os.getenv("DB_PATH", "wishlist.db").strip() or "wishlist.db",
        webhook_url=os.getenv("WEBHOOK_URL", "").strip() or None,
        webhook_path=os.getenv("WEBHOOK_PATH", "/telegram").strip() or "/telegram",
        webhook_secret_token=os.getenv("WEBHOOK_SECRET_TOKEN", "").strip() or None,
        port=int(os.getenv("PORT", "8080").strip() or "8080"),
        draft_ttl_hours=int(os.getenv("DRAFT_TTL_HOURS", "24").strip() or "24"),
        notify_delay_s=float(os.getenv("NOTIFY_DELAY_S", "0.3").strip() or "0.3"),
    )
