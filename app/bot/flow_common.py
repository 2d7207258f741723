from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from telegram import InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from app.bot.render import member_display_name
from app.core.i18n import t
from app.core.money import escape_html
from app.db.models import Member
from app.services.households import (
    AlreadyInHousehold,
    DirectoryError,
    HouseholdRequired,
    InviteCodeNotFound,
    resolve_member,
)
from app.services.items import AmbiguousItemId
from app.services.wizard import AddItemWizard


UTC = ZoneInfo("UTC")

logger = logging.getLogger("wishlist-bot")

Handler = Callable[[Update, ContextTypes.DEFAULT_TYPE], Awaitable[None]]

_PRECONDITION_TEXT: dict[type[DirectoryError], str] = {
    HouseholdRequired: "common.need_household",
    AlreadyInHousehold: "common.already_in_household",
    InviteCodeNotFound: "household.bad_code",
    AmbiguousItemId: "items.id_ambiguous",
}


def now_utc() -> datetime:
    return datetime.now(tz=UTC)


def wizard_of(context: ContextTypes.DEFAULT_TYPE) -> AddItemWizard:
    return context.bot_data["wizard"]


def notify_delay_of(context: ContextTypes.DEFAULT_TYPE) -> float:
    return float(context.bot_data.get("notify_delay_s", 0.0))


def acting_member(update: Update) -> Member | None:
    u = update.effective_user
    if not u:
        return None
    return resolve_member(u.id, member_display_name(u.first_name, u.last_name, u.username))


def is_private(update: Update) -> bool:
    return bool(update.effective_chat and update.effective_chat.type == "private")


async def send(update: Update, text: str, *, reply_markup: InlineKeyboardMarkup | None = None) -> None:
    msg = update.effective_message
    if msg:
        await msg.reply_text(text, parse_mode=ParseMode.HTML, reply_markup=reply_markup)


async def edit_or_send(
    update: Update,
    text: str,
    *,
    reply_markup: InlineKeyboardMarkup | None = None,
) -> None:
    q = update.callback_query
    if q and q.message:
        await q.edit_message_text(text, parse_mode=ParseMode.HTML, reply_markup=reply_markup)
        return
    await send(update, text, reply_markup=reply_markup)


async def _tell(update: Update, text: str) -> None:
    q = update.callback_query
    try:
        if q:
            await q.answer(text)
        else:
            await send(update, escape_html(text))
    except TelegramError:
        logger.warning("Could not deliver error notice", exc_info=True)


def guarded(op: str) -> Callable[[Handler], Handler]:
    """
    Contain failures of one update inside its handler.

    Precondition errors get their corrective message; store errors are logged
    with the operation and user and answered with a generic notice.
    """

    def deco(fn: Handler) -> Handler:
        @functools.wraps(fn)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            try:
                await fn(update, context)
            except DirectoryError as e:
                await _tell(update, t(_PRECONDITION_TEXT.get(type(e), "common.failed")))
            except SQLAlchemyError:
                uid = update.effective_user.id if update.effective_user else None
                logger.exception("Store error in %s (telegram user %s)", op, uid)
                await _tell(update, t("common.failed"))

        return wrapper

    return deco
