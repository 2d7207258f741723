from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from app.bot.actions import AskPrice, DeleteItem, PickCategory, PickPrice, ShowCategory, SkipPrice, ToggleStatus
from app.core.i18n import t
from app.core.money import fmt_money
from app.db.models import Category, Item


QUICK_PRICES = [Decimal(v) for v in ("500", "1000", "1500", "2000", "5000")]


def category_picker_kb(item: Item, categories: list[Category]) -> InlineKeyboardMarkup:
    rows: list[list[InlineKeyboardButton]] = []
    row: list[InlineKeyboardButton] = []
    for c in categories:
        row.append(InlineKeyboardButton(c.name, callback_data=PickCategory(item.id, c.id).encode()))
        if len(row) == 2:
            rows.append(row)
            row = []
    if row:
        rows.append(row)
    rows.append([InlineKeyboardButton(t("common.skip"), callback_data=PickCategory(item.id, None).encode())])
    return InlineKeyboardMarkup(rows)


def price_picker_kb(item: Item) -> InlineKeyboardMarkup:
    quick = [
        InlineKeyboardButton(fmt_money(v), callback_data=PickPrice(item.id, v).encode()) for v in QUICK_PRICES
    ]
    return InlineKeyboardMarkup(
        [
            quick[:3],
            quick[3:],
            [
                InlineKeyboardButton(t("btn.price_manual"), callback_data=AskPrice(item.id).encode()),
                InlineKeyboardButton(t("common.skip"), callback_data=SkipPrice(item.id).encode()),
            ],
        ]
    )


def item_actions_kb(item: Item) -> InlineKeyboardMarkup:
    toggle_label = t("btn.toggle_active") if item.status == "done" else t("btn.toggle_done")
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(toggle_label, callback_data=ToggleStatus(item.id).encode()),
                InlineKeyboardButton(t("btn.price"), callback_data=AskPrice(item.id).encode()),
            ],
            [InlineKeyboardButton(t("btn.delete"), callback_data=DeleteItem(item.id).encode())],
        ]
    )


def categories_overview_kb(categories: list[Category], counts: Mapping[int | None, int]) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(f"{c.name} ({counts.get(c.id, 0)})", callback_data=ShowCategory(c.id).encode())]
            for c in categories
        ]
    )
