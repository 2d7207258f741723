from __future__ import annotations

from app.core.i18n import t
from app.core.money import escape_html, fmt_money
from app.db.models import Category, Item
from app.services.items import short_id


def item_line(item: Item) -> str:
    title = escape_html(item.title)
    if item.status == "done":
        title = f"<s>{title}</s>"
    price = f" — {fmt_money(item.price_uah)}" if item.price_uah else ""
    return f"• {title}{price} (id:{short_id(item)})"


def grouped_list(items: list[Item], categories: list[Category]) -> str:
    """Items grouped under bold category headers, in first-seen order."""
    names = {c.id: c.name for c in categories}
    groups: dict[str, list[Item]] = {}
    for it in items:
        name = names.get(it.category_id) if it.category_id is not None else None
        groups.setdefault(name or t("common.no_category"), []).append(it)

    blocks = []
    for name, rows in groups.items():
        lines = [f"<b>{escape_html(name)}</b>"]
        lines.extend(item_line(it) for it in rows)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def member_display_name(first_name: str | None, last_name: str | None, username: str | None) -> str | None:
    full = " ".join(p for p in (first_name, last_name) if p)
    return full or username or None
