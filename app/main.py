from __future__ import annotations

import asyncio
import json
import logging
import signal
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import urlparse

from telegram import Update
from telegram.ext import Application

from app.bot.handlers import build_handlers
from app.core.config import Settings, load_settings
from app.db.session import init_db


logging.basicConfig(
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger("wishlist-bot")


def normalize_webhook_path(webhook_path: str | None) -> str:
    path = (webhook_path or "/telegram").strip() or "/telegram"
    if not path.startswith("/"):
        path = f"/{path}"
    return path


def _start_http_server(
    *,
    port: int,
    webhook_path: str,
    loop: asyncio.AbstractEventLoop,
    app: Application,
    webhook_secret_token: str | None,
) -> HTTPServer:
    """
    Start a minimal HTTP server for health checks + the Telegram webhook.

    Webhook updates are forwarded into python-telegram-bot's Application on the
    running asyncio loop. Once the secret token matches, every delivery is
    acknowledged with 200 (even an undecodable one) so Telegram never retries it.
    """
    normalized_path = normalize_webhook_path(webhook_path)

    class Handler(BaseHTTPRequestHandler):
        def _read_body(self) -> bytes:
            length_raw = self.headers.get("Content-Length", "0")
            try:
                length = int(length_raw)
            except ValueError:
                length = 0
            if length <= 0:
                return b""
            return self.rfile.read(length)

        def _ok(self) -> None:
            self.send_response(200)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.end_headers()
            self.wfile.write(b"ok")

        def do_GET(self) -> None:  # noqa: N802
            path = urlparse(self.path).path
            if path in ("/", "/health", "/healthz"):
                self._ok()
                return
            self.send_response(404)
            self.end_headers()

        def do_POST(self) -> None:  # noqa: N802
            path = urlparse(self.path).path
            if path != normalized_path:
                self.send_response(404)
                self.end_headers()
                return

            if webhook_secret_token:
                got = self.headers.get("X-Telegram-Bot-Api-Secret-Token", "")
                if got != webhook_secret_token:
                    self.send_response(403)
                    self.end_headers()
                    return

            raw = self._read_body()
            try:
                update = Update.de_json(json.loads(raw.decode("utf-8")), app.bot)
            except Exception:
                logger.exception("Failed to decode incoming webhook update (%d bytes)", len(raw))
                self._ok()
                return

            if update is not None:
                # Schedule processing on the main asyncio loop and return immediately.
                asyncio.run_coroutine_threadsafe(app.process_update(update), loop)
            self._ok()

        def log_message(self, format: str, *args) -> None:
            # Silence default http.server logs; our bot has its own logger.
            return

    server = HTTPServer(("0.0.0.0", port), Handler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    logger.info("HTTP server listening on 0.0.0.0:%s (webhook path: %s)", port, normalized_path)
    return server


def build_application(settings: Settings) -> Application:
    app = Application.builder().token(settings.bot_token).build()
    build_handlers(
        app,
        draft_ttl_hours=settings.draft_ttl_hours,
        notify_delay_s=settings.notify_delay_s,
    )
    return app


async def _run_webhook(settings: Settings) -> None:
    app = build_application(settings)

    await app.initialize()
    await app.start()

    loop = asyncio.get_running_loop()
    server = _start_http_server(
        port=settings.port,
        webhook_path=settings.webhook_path,
        loop=loop,
        app=app,
        webhook_secret_token=settings.webhook_secret_token,
    )

    webhook_base = (settings.webhook_url or "").rstrip("/")
    webhook_full_url = f"{webhook_base}{normalize_webhook_path(settings.webhook_path)}"

    logger.info("Setting Telegram webhook to %s", webhook_full_url)
    await app.bot.set_webhook(
        url=webhook_full_url,
        allowed_updates=["message", "callback_query"],
        secret_token=settings.webhook_secret_token,
    )

    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Some platforms (e.g., Windows) don't support signal handlers in asyncio.
            pass

    await stop_event.wait()

    server.shutdown()
    server.server_close()
    await app.stop()
    await app.shutdown()


def main() -> None:
    settings = load_settings()
    init_db(settings.database_url, settings.db_path)

    if settings.webhook_url:
        logger.info("Starting bot (webhook mode)...")
        asyncio.run(_run_webhook(settings))
        return

    # Local/dev fallback.
    app = build_application(settings)
    logger.info("Starting bot (polling fallback; set WEBHOOK_URL to enable webhooks)...")
    app.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
