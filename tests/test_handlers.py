"""Telegram handler tests with mocked updates and bot."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.error import BadRequest, Forbidden
from telegram.ext import ApplicationBuilder

from app.bot import handlers
from app.bot.actions import PickCategory, PickPrice, ToggleStatus
from app.bot.notify import fan_out
from app.core.i18n import t
from app.core.money import NBSP, escape_html
from app.db.models import Member
from app.services import households, items
from app.services.wizard import AddItemWizard


def _context(wizard, *, args=None):
    bot = MagicMock()
    bot.send_message = AsyncMock()
    bot.send_photo = AsyncMock()
    return SimpleNamespace(
        bot=bot,
        args=args or [],
        bot_data={"wizard": wizard, "notify_delay_s": 0.0},
    )


def _message_update(user_id, text, *, first_name="Alice"):
    message = MagicMock()
    message.text = text
    message.caption = None
    message.photo = []
    message.reply_text = AsyncMock()
    return SimpleNamespace(
        effective_user=SimpleNamespace(id=user_id, first_name=first_name, last_name=None, username=None),
        effective_chat=SimpleNamespace(type="private"),
        effective_message=message,
        message=message,
        callback_query=None,
    )


def _callback_update(user_id, data, *, first_name="Alice"):
    query = MagicMock()
    query.data = data
    query.answer = AsyncMock()
    query.edit_message_text = AsyncMock()
    update = _message_update(user_id, None, first_name=first_name)
    update.callback_query = query
    return update


def _replies(update):
    return [c.args[0] for c in update.effective_message.reply_text.await_args_list]


def _things(household_id):
    return next(c for c in households.list_categories(household_id) if c.slug == "things")


async def _open_draft_with_title(context, title="Кроссовки"):
    await handlers.add(_message_update(1001, "/add"), context)
    await handlers.on_message(_message_update(1001, title), context)


@pytest.mark.asyncio
async def test_fan_out_isolates_failing_recipient():
    """Test that one blocked recipient does not stop delivery to the rest."""
    bot = MagicMock()
    bot.send_message = AsyncMock(side_effect=[Forbidden("bot was blocked by the user"), None])
    recipients = [Member(telegram_user_id=1), Member(telegram_user_id=2)]

    delivered = await fan_out(bot, recipients, "hello")

    assert delivered == 1
    assert [c.kwargs["chat_id"] for c in bot.send_message.await_args_list] == [1, 2]


@pytest.mark.asyncio
async def test_fan_out_sends_photo_with_caption():
    """Test that an event with a photo goes out as a captioned photo."""
    bot = MagicMock()
    bot.send_photo = AsyncMock()
    bot.send_message = AsyncMock()

    await fan_out(bot, [Member(telegram_user_id=7)], "caption", photo_file_id="AgADphoto")

    bot.send_photo.assert_awaited_once()
    assert bot.send_photo.await_args.kwargs["photo"] == "AgADphoto"
    bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_malformed_callback_is_answered(couple, wizard):
    """Test that a garbage payload is acknowledged and otherwise ignored."""
    update = _callback_update(1001, "launch:missiles")
    await handlers.on_callback(update, _context(wizard))
    update.callback_query.answer.assert_awaited_once_with()
    update.callback_query.edit_message_text.assert_not_awaited()


@pytest.mark.asyncio
async def test_callback_without_household_gets_corrective_notice(wizard):
    """Test that household-only buttons tell the member how to proceed."""
    update = _callback_update(3000, ToggleStatus("00000000-0000-4000-8000-000000000000").encode())
    await handlers.on_callback(update, _context(wizard))
    update.callback_query.answer.assert_awaited_once_with(t("common.need_household"))


@pytest.mark.asyncio
async def test_add_without_household_replies_with_hint(wizard):
    """Test the precondition message for /add."""
    update = _message_update(3001, "/add")
    await handlers.add(update, _context(wizard))
    assert _replies(update) == [escape_html(t("common.need_household"))]


@pytest.mark.asyncio
async def test_full_wizard_notifies_partner_twice(couple, wizard):
    """Test the wizard end to end through handlers: two notices reach the partner."""
    alice, bob, household = couple
    context = _context(wizard)

    start = _message_update(1001, "/add")
    await handlers.add(start, context)
    assert _replies(start) == [t("wizard.ask_title")]

    title = _message_update(1001, "Кроссовки")
    await handlers.on_message(title, context)
    assert title.effective_message.reply_text.await_args.kwargs["reply_markup"] is not None

    item = items.list_items(household.id)[0]
    press = _callback_update(1001, PickCategory(item.id, _things(household.id).id).encode())
    await handlers.on_callback(press, context)
    press.callback_query.edit_message_text.assert_awaited_once()

    price = _message_update(1001, "1500")
    await handlers.on_message(price, context)

    sent = context.bot.send_message.await_args_list
    assert len(sent) == 2
    assert all(c.kwargs["chat_id"] == bob.telegram_user_id for c in sent)
    assert "Кроссовки" in sent[0].kwargs["text"]
    assert f"1{NBSP}500" in sent[1].kwargs["text"]


@pytest.mark.asyncio
async def test_new_item_notice_survives_failed_reply(couple, wizard):
    """Test that the partner is notified even if editing the actor's message fails."""
    alice, bob, household = couple
    context = _context(wizard)
    await _open_draft_with_title(context)
    item = items.list_items(household.id)[0]
    things = _things(household.id)

    press = _callback_update(1001, PickCategory(item.id, things.id).encode())
    press.callback_query.edit_message_text.side_effect = BadRequest("Message to edit not found")
    with pytest.raises(BadRequest):
        await handlers.on_callback(press, context)

    assert items.get_item(household.id, item.id).category_id == things.id
    context.bot.send_message.assert_awaited_once()
    assert context.bot.send_message.await_args.kwargs["chat_id"] == bob.telegram_user_id


@pytest.mark.asyncio
async def test_price_notice_survives_failed_answer(couple, wizard):
    """Test that a failed callback answer does not swallow the price notice."""
    alice, bob, household = couple
    context = _context(wizard)
    await _open_draft_with_title(context)
    item = items.list_items(household.id)[0]
    await handlers.on_callback(_callback_update(1001, PickCategory(item.id, None).encode()), context)
    context.bot.send_message.reset_mock()

    price = _callback_update(1001, PickPrice(item.id, Decimal("1500")).encode())
    price.callback_query.answer.side_effect = BadRequest("Query is too old")
    with pytest.raises(BadRequest):
        await handlers.on_callback(price, context)

    context.bot.send_message.assert_awaited_once()
    assert f"1{NBSP}500" in context.bot.send_message.await_args.kwargs["text"]


@pytest.mark.asyncio
async def test_single_line_add_notifies_even_if_reply_fails(couple, wizard):
    """Test the one-shot /add: the notice goes out when the confirmation cannot be sent."""
    alice, bob, household = couple
    context = _context(wizard, args=["Наушники", "|", "2999"])
    update = _message_update(1001, "/add Наушники | 2999")
    update.effective_message.reply_text.side_effect = Forbidden("bot was blocked by the user")

    with pytest.raises(Forbidden):
        await handlers.add(update, context)

    context.bot.send_message.assert_awaited_once()
    assert len(items.list_items(household.id)) == 1


@pytest.mark.asyncio
async def test_stale_button_only_toasts(couple, wizard):
    """Test that a category button for a since-deleted item does nothing but toast."""
    alice, _, household = couple
    context = _context(wizard)
    await _open_draft_with_title(context)
    item = items.list_items(household.id)[0]
    await handlers.cancel(_message_update(1001, "/cancel"), context)
    items.soft_delete(household.id, item.id)

    press = _callback_update(1001, PickCategory(item.id, None).encode())
    await handlers.on_callback(press, context)
    press.callback_query.answer.assert_awaited_once_with(t("common.not_found"))
    press.callback_query.edit_message_text.assert_not_awaited()
    context.bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_free_text_without_draft_is_silent(couple, wizard):
    """Test that chatting outside the wizard produces no reply."""
    update = _message_update(1001, "привет")
    await handlers.on_message(update, _context(wizard))
    update.effective_message.reply_text.assert_not_awaited()


def test_build_handlers_registers_everything():
    """Test that the application is wired with the wizard and all handlers."""
    app = ApplicationBuilder().token("123456:TEST-TOKEN").build()
    handlers.build_handlers(app, draft_ttl_hours=12, notify_delay_s=0.5)

    assert isinstance(app.bot_data["wizard"], AddItemWizard)
    assert app.bot_data["notify_delay_s"] == 0.5
    commands = {
        cmd
        for h in app.handlers[0]
        for cmd in getattr(h, "commands", ())
    }
    assert {"start", "help", "ping", "add", "list", "setprice", "cancel", "budget"} <= commands
