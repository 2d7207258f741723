from __future__ import annotations

import logging

from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from app.bot.actions import (
    AskPrice,
    DeleteItem,
    PickCategory,
    PickPrice,
    ShowCategory,
    SkipPrice,
    ToggleStatus,
    parse_action,
)
from app.bot.flow_common import (
    acting_member,
    edit_or_send,
    guarded,
    is_private,
    notify_delay_of,
    now_utc,
    send,
    wizard_of,
)
from app.bot.keyboards import category_picker_kb, categories_overview_kb, item_actions_kb, price_picker_kb
from app.bot.notify import publish_events
from app.bot.render import grouped_list, item_line
from app.core.i18n import t
from app.core.money import escape_html, fmt_money, parse_price
from app.core.state import DraftStore
from app.db.models import Member
from app.services import households, items
from app.services.households import HouseholdRequired, require_household
from app.services.wizard import AddItemWizard, Step


logger = logging.getLogger("wishlist-bot")

_TOASTS = {
    "category_set": "wizard.category_set",
    "stale": "common.stale_button",
    "not_found": "common.not_found",
}


async def _reply(update: Update, step: Step, *, edit: bool = False) -> None:
    out = edit_or_send if edit else send
    item = step.item
    if step.outcome == "ask_title":
        await send(update, t("wizard.ask_title"))
    elif step.outcome == "title_rejected":
        await send(update, t("wizard.title_empty"))
    elif step.outcome == "ask_category" and item is not None:
        await out(
            update,
            t("wizard.ask_category", title=escape_html(item.title)),
            reply_markup=category_picker_kb(item, step.categories),
        )
    elif step.outcome == "ask_price" and item is not None:
        await out(update, t("wizard.ask_price"), reply_markup=price_picker_kb(item))
    elif step.outcome == "ask_price_manual":
        await send(update, t("wizard.ask_price_manual"))
    elif step.outcome == "price_rejected":
        await send(update, t("wizard.price_bad"))
    elif step.outcome == "completed" and item is not None:
        await out(update, t("wizard.done", line=item_line(item)), reply_markup=item_actions_kb(item))
    elif step.outcome == "restart":
        await send(update, t("wizard.restart"))
    elif step.outcome == "not_found" and not update.callback_query:
        await send(update, t("common.not_found"))


async def _publish(context: ContextTypes.DEFAULT_TYPE, member: Member, step: Step) -> None:
    if step.events:
        await publish_events(context.bot, member, step.events, delay_s=notify_delay_of(context))


async def render_step(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    member: Member,
    step: Step,
    *,
    edit: bool = False,
) -> None:
    """
    Show the user what a wizard step produced, then fan out its events.

    The step is already committed, so its events go out even when the reply
    to the acting user fails.
    """
    try:
        await _reply(update, step, edit=edit)
    finally:
        await _publish(context, member, step)


# -----------------------
# Commands
# -----------------------


@guarded("start")
async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not is_private(update):
        await send(update, t("common.private_only"))
        return
    member = acting_member(update)
    if not member:
        return
    if member.household_id:
        household = households.get_household(member.household_id)
        name = (household.name if household else None) or t("common.default_household")
        await send(update, t("start.with_household", name=escape_html(name)))
        return
    await send(update, escape_html(t("start.no_household")))


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await send(update, escape_html(t("help.text")))


async def ping(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await send(update, t("ping"))


@guarded("create_household")
async def create_household(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    member = acting_member(update)
    if not member:
        return
    household = households.create_household(member, " ".join(context.args or []))
    await send(update, t("household.created", code=household.invite_code))


@guarded("join_household")
async def join_household(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    code = " ".join(context.args or []).strip()
    if not code:
        await send(update, t("household.join_usage"))
        return
    member = acting_member(update)
    if not member:
        return
    household = households.join_household(member, code)
    name = household.name or t("common.default_household")
    await send(update, t("household.joined", name=escape_html(name)))


@guarded("categories")
async def categories(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    member = acting_member(update)
    if not member:
        return
    household = require_household(member)
    cats = households.list_categories(household.id)
    if not cats:
        await send(update, t("categories.empty"))
        return
    counts = items.category_counts(household.id)
    lines = [t("categories.title")]
    lines.extend(
        t("categories.row", name=escape_html(c.name), slug=escape_html(c.slug), count=counts.get(c.id, 0))
        for c in cats
    )
    await send(update, "\n".join(lines), reply_markup=categories_overview_kb(cats, counts))


@guarded("budget")
async def budget(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    member = acting_member(update)
    if not member:
        return
    household = require_household(member)
    raw = " ".join(context.args or []).strip()
    if not raw:
        summary = households.budget_summary(household.id)
        await send(
            update,
            t(
                "budget.summary",
                ceiling=fmt_money(summary.ceiling),
                total=fmt_money(summary.active_total),
                remainder=fmt_money(summary.remainder),
            ),
        )
        return
    amount = parse_price(raw)
    if amount is None:
        await send(update, t("budget.usage"))
        return
    households.set_budget(household.id, amount)
    await send(update, t("budget.set", amount=fmt_money(amount)))


@guarded("add")
async def add(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    member = acting_member(update)
    if not member:
        return
    wizard = wizard_of(context)
    text = " ".join(context.args or []).strip()
    if not text:
        await render_step(update, context, member, wizard.start(member, now_utc=now_utc()))
        return
    step = wizard.add_single(member, text)
    if step.outcome == "completed" and step.item is not None:
        try:
            await send(
                update, t("wizard.added_single", line=item_line(step.item)), reply_markup=item_actions_kb(step.item)
            )
        finally:
            await _publish(context, member, step)
        return
    await render_step(update, context, member, step)


@guarded("list")
async def list_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    member = acting_member(update)
    if not member:
        return
    household = require_household(member)
    rows = items.list_items(household.id, query=" ".join(context.args or []))
    if not rows:
        await send(update, t("items.list_empty"))
        return
    await send(update, grouped_list(rows, households.list_categories(household.id)))


@guarded("setprice")
async def setprice(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = context.args or []
    if len(args) < 2:
        await send(update, escape_html(t("items.setprice_usage")))
        return
    member = acting_member(update)
    if not member:
        return
    step = wizard_of(context).quick_set_price(member, item_ref=args[0], raw_price=" ".join(args[1:]))
    if step.outcome == "completed" and step.item is not None:
        try:
            await send(update, t("items.price_set", line=item_line(step.item)), reply_markup=item_actions_kb(step.item))
        finally:
            await _publish(context, member, step)
        return
    await render_step(update, context, member, step)


@guarded("cancel")
async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    member = acting_member(update)
    if not member:
        return
    cancelled = wizard_of(context).cancel(member)
    await send(update, t("wizard.cancelled") if cancelled else t("wizard.nothing_to_cancel"))


# -----------------------
# Buttons
# -----------------------


@guarded("callback")
async def on_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    q = update.callback_query
    if not q:
        return
    action = parse_action(q.data)
    if action is None:
        logger.info("Ignoring malformed callback payload %r", q.data)
        await q.answer()
        return
    member = acting_member(update)
    if not member:
        await q.answer()
        return
    if not member.household_id:
        raise HouseholdRequired()

    wizard = wizard_of(context)
    household_id = member.household_id

    if isinstance(action, PickCategory):
        step = wizard.choose_category(
            member, item_id=action.item_id, category_id=action.category_id, now_utc=now_utc()
        )
        await _answer_and_render(update, context, member, step, edit=True)
    elif isinstance(action, PickPrice):
        step = wizard.choose_price(member, item_id=action.item_id, amount=action.amount, now_utc=now_utc())
        await _answer_and_render(update, context, member, step, edit=True)
    elif isinstance(action, SkipPrice):
        step = wizard.choose_price(member, item_id=action.item_id, amount=None, now_utc=now_utc())
        await _answer_and_render(update, context, member, step, edit=True)
    elif isinstance(action, AskPrice):
        step = wizard.ask_manual_price(member, item_id=action.item_id, now_utc=now_utc())
        await _answer_and_render(update, context, member, step)
    elif isinstance(action, ToggleStatus):
        item = items.toggle_status(household_id, action.item_id)
        if item is None:
            await q.answer(t("common.not_found"))
            return
        await q.answer()
        await edit_or_send(update, t("items.updated", line=item_line(item)), reply_markup=item_actions_kb(item))
    elif isinstance(action, DeleteItem):
        item = items.soft_delete(household_id, action.item_id)
        if item is None:
            await q.answer(t("common.not_found"))
            return
        await q.answer()
        await edit_or_send(update, t("items.deleted"))
    elif isinstance(action, ShowCategory):
        category = households.get_category(household_id, action.category_id)
        if category is None:
            await q.answer(t("common.not_found"))
            return
        await q.answer()
        rows = items.items_in_category(household_id, category.id)
        if not rows:
            await send(update, t("categories.items_empty", name=escape_html(category.name)))
            return
        await send(update, grouped_list(rows, [category]))
    else:
        logger.warning("Unhandled action %r", action)
        await q.answer()


async def _answer_and_render(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    member: Member,
    step: Step,
    *,
    edit: bool = False,
) -> None:
    toast = _TOASTS.get(step.outcome)
    try:
        await update.callback_query.answer(t(toast) if toast else None)  # type: ignore[union-attr]
        if step.outcome not in _TOASTS:
            await _reply(update, step, edit=edit)
    finally:
        await _publish(context, member, step)


# -----------------------
# Free text / photos
# -----------------------


@guarded("wizard_message")
async def on_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    msg = update.effective_message
    if not msg:
        return
    text = msg.text or msg.caption
    if (text or "").lstrip().startswith("/"):
        return
    member = acting_member(update)
    if not member:
        return
    photo_file_id = msg.photo[-1].file_id if msg.photo else None
    step = wizard_of(context).handle_message(member, text=text, photo_file_id=photo_file_id, now_utc=now_utc())
    if step.outcome in ("ignored", "stale"):
        return
    await render_step(update, context, member, step)


def build_handlers(app: Application, *, draft_ttl_hours: int, notify_delay_s: float) -> None:
    app.bot_data["wizard"] = AddItemWizard(DraftStore(ttl_hours=draft_ttl_hours))
    app.bot_data["notify_delay_s"] = notify_delay_s

    private = filters.ChatType.PRIVATE
    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("ping", ping))
    app.add_handler(CommandHandler("create_household", create_household, filters=private))
    app.add_handler(CommandHandler("join_household", join_household, filters=private))
    app.add_handler(CommandHandler("categories", categories, filters=private))
    app.add_handler(CommandHandler("budget", budget, filters=private))
    app.add_handler(CommandHandler("add", add, filters=private))
    app.add_handler(CommandHandler("list", list_command, filters=private))
    app.add_handler(CommandHandler("setprice", setprice, filters=private))
    app.add_handler(CommandHandler("cancel", cancel, filters=private))
    app.add_handler(CallbackQueryHandler(on_callback))
    app.add_handler(MessageHandler(private & (filters.TEXT | filters.PHOTO) & ~filters.COMMAND, on_message))

    async def unknown(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message:
            await update.message.reply_text(t("unknown.use_start"))

    app.add_handler(MessageHandler(filters.COMMAND, unknown))

    async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        # Keep it simple: log exception; avoid crashing the bot.
        logger.exception("Unhandled error while processing update", exc_info=context.error)

    app.add_error_handler(on_error)
