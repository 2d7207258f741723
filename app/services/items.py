from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from decimal import Decimal
from typing import Literal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import Category, Item, ItemImage, Member
from app.db.session import get_session
from app.services.households import DirectoryError


logger = logging.getLogger(__name__)

ItemStatus = Literal["active", "done", "deleted"]

SHORT_ID_LENGTH = 6


class AmbiguousItemId(DirectoryError):
    pass


def short_id(item: Item) -> str:
    return item.id[:SHORT_ID_LENGTH]


def _touch(item: Item) -> None:
    item.updated_at = datetime.utcnow()


def new_item(member: Member, *, title: str, price: Decimal = Decimal("0")) -> Item:
    if not member.household_id:
        raise ValueError("member has no household")
    return Item(
        household_id=member.household_id,
        category_id=None,
        title=title,
        price_uah=price,
        status="active",
        created_by=member.id,
    )


def create_item(member: Member, *, title: str, price: Decimal = Decimal("0")) -> Item:
    with get_session() as session:
        item = new_item(member, title=title, price=price)
        session.add(item)
        session.flush()
    logger.info("Item %s created in household %s", item.id, item.household_id)
    return item


def _load(session: Session, household_id: str, item_id: str, *, include_deleted: bool = False) -> Item | None:
    item = session.get(Item, item_id)
    if item is None or item.household_id != household_id:
        return None
    if item.status == "deleted" and not include_deleted:
        return None
    return item


def get_item(household_id: str, item_id: str, *, include_deleted: bool = False) -> Item | None:
    with get_session() as session:
        return _load(session, household_id, item_id, include_deleted=include_deleted)


def find_item_by_prefix(household_id: str, prefix: str) -> Item | None:
    """
    Resolve an id as shown in lists (`id:abcdef`) or a full id.

    Raises AmbiguousItemId if more than one live item matches.
    """
    raw = (prefix or "").strip().lower()
    if raw.startswith("id:"):
        raw = raw[3:]
    if not raw:
        return None
    with get_session() as session:
        rows = (
            session.execute(
                select(Item)
                .where(
                    Item.household_id == household_id,
                    Item.status != "deleted",
                    Item.id.startswith(raw, autoescape=True),
                )
                .limit(2)
            )
            .scalars()
            .all()
        )
    if len(rows) > 1:
        raise AmbiguousItemId()
    return rows[0] if rows else None


def set_category(household_id: str, item_id: str, category_id: int | None) -> Item | None:
    with get_session() as session:
        item = _load(session, household_id, item_id)
        if item is None:
            return None
        item.category_id = category_id
        _touch(item)
        session.flush()
        return item


def set_price(household_id: str, item_id: str, price: Decimal) -> tuple[Item, Decimal] | None:
    """Set an item's price. Returns the item and its previous price."""
    if price < 0:
        raise ValueError("price must be non-negative")
    with get_session() as session:
        item = _load(session, household_id, item_id)
        if item is None:
            return None
        previous = Decimal(item.price_uah or 0)
        item.price_uah = price
        _touch(item)
        session.flush()
        return item, previous


def attach_image(session: Session, item_id: str, file_id: str) -> ItemImage:
    """Stage an image row in the caller's session; committed with it."""
    image = ItemImage(item_id=item_id, file_id=file_id)
    session.add(image)
    return image


def first_image(item_id: str) -> str | None:
    with get_session() as session:
        return (
            session.execute(
                select(ItemImage.file_id).where(ItemImage.item_id == item_id).order_by(ItemImage.id).limit(1)
            )
            .scalars()
            .first()
        )


def toggle_status(household_id: str, item_id: str) -> Item | None:
    with get_session() as session:
        item = _load(session, household_id, item_id)
        if item is None:
            return None
        item.status = "active" if item.status == "done" else "done"
        _touch(item)
        session.flush()
        return item


def soft_delete(household_id: str, item_id: str) -> Item | None:
    with get_session() as session:
        item = _load(session, household_id, item_id)
        if item is None:
            return None
        item.status = "deleted"
        _touch(item)
        session.flush()
        logger.info("Item %s deleted", item.id)
        return item


def list_items(household_id: str, *, query: str = "") -> list[Item]:
    """
    Live (not deleted) items, newest first.

    `query` matches a category name/slug or the title, case-insensitively.
    """
    with get_session() as session:
        rows = (
            session.execute(
                select(Item)
                .where(Item.household_id == household_id, Item.status != "deleted")
                .order_by(Item.created_at.desc())
            )
            .scalars()
            .all()
        )
        cats = {
            c.id: c
            for c in session.execute(select(Category).where(Category.household_id == household_id)).scalars()
        }

    needle = (query or "").strip().casefold()
    if not needle:
        return list(rows)

    def _matches(item: Item) -> bool:
        cat = cats.get(item.category_id) if item.category_id is not None else None
        if cat and (needle in cat.name.casefold() or needle in cat.slug.casefold()):
            return True
        return needle in item.title.casefold()

    return [it for it in rows if _matches(it)]


def items_in_category(household_id: str, category_id: int) -> list[Item]:
    with get_session() as session:
        return list(
            session.execute(
                select(Item)
                .where(
                    Item.household_id == household_id,
                    Item.category_id == category_id,
                    Item.status != "deleted",
                )
                .order_by(Item.created_at.desc())
            )
            .scalars()
            .all()
        )


def category_counts(household_id: str) -> Counter[int | None]:
    with get_session() as session:
        ids = (
            session.execute(
                select(Item.category_id).where(Item.household_id == household_id, Item.status != "deleted")
            )
            .scalars()
            .all()
        )
    return Counter(ids)
