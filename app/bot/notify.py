from __future__ import annotations

import asyncio
import logging

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

from app.core.i18n import t
from app.core.money import escape_html, fmt_money
from app.db.models import Member
from app.services.households import co_members, get_category
from app.services.wizard import Event


logger = logging.getLogger(__name__)


async def fan_out(
    bot: Bot,
    recipients: list[Member],
    text: str,
    *,
    photo_file_id: str | None = None,
    delay_s: float = 0.0,
) -> int:
    """
    Send `text` to each recipient in turn, `delay_s` apart.

    Delivery is best-effort: a recipient who blocked the bot (or any other
    Telegram failure) is logged and skipped. Returns the number delivered.
    """
    delivered = 0
    for i, m in enumerate(recipients):
        if i and delay_s > 0:
            await asyncio.sleep(delay_s)
        try:
            if photo_file_id:
                await bot.send_photo(
                    chat_id=m.telegram_user_id,
                    photo=photo_file_id,
                    caption=text,
                    parse_mode=ParseMode.HTML,
                )
            else:
                await bot.send_message(chat_id=m.telegram_user_id, text=text, parse_mode=ParseMode.HTML)
            delivered += 1
        except TelegramError:
            logger.warning("Notification to %s failed", m.telegram_user_id, exc_info=True)
    return delivered


def event_text(event: Event, *, actor_name: str | None) -> str:
    item = event.item
    if event.kind == "item_created":
        category = None
        if item.category_id is not None:
            category = get_category(item.household_id, item.category_id)
        return t(
            "notify.new_item",
            who=escape_html(actor_name or t("notify.someone")),
            title=escape_html(item.title),
            category=escape_html(category.name if category else t("common.no_category")),
        )
    return t("notify.price_updated", title=escape_html(item.title), price=fmt_money(item.price_uah))


async def publish_events(
    bot: Bot,
    actor: Member,
    events: list[Event],
    *,
    delay_s: float = 0.0,
) -> int:
    """Fan out every wizard event to the actor's co-members."""
    if not events or not actor.household_id:
        return 0
    recipients = co_members(actor.household_id, actor.telegram_user_id)
    if not recipients:
        return 0
    delivered = 0
    for event in events:
        delivered += await fan_out(
            bot,
            recipients,
            event_text(event, actor_name=actor.name),
            photo_file_id=event.photo_file_id,
            delay_s=delay_s,
        )
    return delivered
