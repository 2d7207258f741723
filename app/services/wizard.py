from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal

from sqlalchemy import delete

from app.core.money import parse_price
from app.core.state import AWAITING_CATEGORY, AWAITING_PRICE, AWAITING_TITLE, DraftStore
from app.db.models import Category, Item, Member, PendingDraft
from app.db.session import get_session
from app.services import items as items_service
from app.services.households import get_category, list_categories, require_household


logger = logging.getLogger(__name__)

Outcome = Literal[
    "ask_title",
    "title_rejected",
    "ask_category",
    "category_set",
    "ask_price",
    "ask_price_manual",
    "price_rejected",
    "completed",
    "restart",
    "stale",
    "ignored",
    "not_found",
]

EventKind = Literal["item_created", "price_updated"]


@dataclass(frozen=True)
class Event:
    kind: EventKind
    item: Item
    photo_file_id: str | None = None


@dataclass
class Step:
    outcome: Outcome
    item: Item | None = None
    categories: list[Category] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)


class AddItemWizard:
    """
    The add-item flow: title -> category -> price.

    Every call rebuilds its context from the database. Stage changes are
    conditional updates, so a duplicated update (webhook redelivery, double
    tap) loses the race and becomes a no-op instead of a second item or a
    second notification.
    """

    def __init__(self, store: DraftStore) -> None:
        self._store = store

    # -----------------------
    # Entry points
    # -----------------------

    def start(self, member: Member, *, now_utc: datetime) -> Step:
        household = require_household(member)
        self._store.start(member, household_id=household.id, now_utc=now_utc)
        return Step("ask_title")

    def cancel(self, member: Member) -> bool:
        return self._store.clear(member)

    def handle_message(
        self,
        member: Member,
        *,
        text: str | None,
        photo_file_id: str | None,
        now_utc: datetime,
    ) -> Step:
        """Feed a free-text (or photo) message to the open draft, if any."""
        if (text or "").lstrip().startswith("/"):
            return Step("ignored")
        if not member.household_id:
            return Step("ignored")
        draft = self._store.load(member, now_utc=now_utc)
        if draft is None:
            return Step("ignored")

        if draft.stage == AWAITING_TITLE:
            return self._submit_title(member, draft, text=text, photo_file_id=photo_file_id, now_utc=now_utc)

        item = self._linked_item(member, draft)
        if item is None:
            return self._restart(draft)
        if draft.stage == AWAITING_CATEGORY:
            return Step("ask_category", item=item, categories=list_categories(member.household_id))
        return self._submit_price(member, draft, item, parse_price(text), now_utc=now_utc)

    # -----------------------
    # Stage: title
    # -----------------------

    def _submit_title(
        self,
        member: Member,
        draft: PendingDraft,
        *,
        text: str | None,
        photo_file_id: str | None,
        now_utc: datetime,
    ) -> Step:
        title = (text or "").strip()
        if not title:
            return Step("title_rejected")

        item_id = str(uuid.uuid4())
        with get_session() as session:
            claimed = self._store.advance(
                draft.id,
                from_stage=AWAITING_TITLE,
                to_stage=AWAITING_CATEGORY,
                now_utc=now_utc,
                session=session,
                title=title,
                photo_file_id=photo_file_id,
                item_id=item_id,
            )
            if not claimed:
                logger.info("Draft %s already left the title stage; ignoring duplicate", draft.id)
                return Step("stale")
            item = items_service.new_item(member, title=title)
            item.id = item_id
            session.add(item)
            session.flush()

        logger.info("Wizard created item %s for member %s", item.id, member.id)
        return Step("ask_category", item=item, categories=list_categories(item.household_id))

    # -----------------------
    # Stage: category
    # -----------------------

    def choose_category(
        self,
        member: Member,
        *,
        item_id: str,
        category_id: int | None,
        now_utc: datetime,
    ) -> Step:
        household = require_household(member)
        if category_id is not None and get_category(household.id, category_id) is None:
            return Step("not_found")

        draft = self._store.load(member, now_utc=now_utc)
        in_wizard = draft is not None and draft.stage == AWAITING_CATEGORY and draft.item_id == item_id
        if not in_wizard:
            # Re-applying a category outside the wizard is a plain edit.
            item = items_service.set_category(household.id, item_id, category_id)
            if item is None:
                return Step("not_found")
            return Step("category_set", item=item)

        photo_file_id = draft.photo_file_id
        with get_session() as session:
            item = session.get(Item, item_id)
            if item is None or item.household_id != household.id or item.status == "deleted":
                session.execute(delete(PendingDraft).where(PendingDraft.id == draft.id))
                return Step("restart")
            claimed = self._store.advance(
                draft.id,
                from_stage=AWAITING_CATEGORY,
                to_stage=AWAITING_PRICE,
                now_utc=now_utc,
                session=session,
                photo_file_id=None,
            )
            if not claimed:
                return Step("stale")
            item.category_id = category_id
            item.updated_at = datetime.utcnow()
            if photo_file_id:
                items_service.attach_image(session, item.id, photo_file_id)
            session.flush()

        return Step(
            "ask_price",
            item=item,
            events=[Event("item_created", item, photo_file_id=photo_file_id)],
        )

    # -----------------------
    # Stage: price
    # -----------------------

    def choose_price(
        self,
        member: Member,
        *,
        item_id: str,
        amount: Decimal | None,
        now_utc: datetime,
    ) -> Step:
        """Quick-pick or skip (`amount=None`) button on the price keyboard."""
        require_household(member)
        draft = self._store.load(member, now_utc=now_utc)
        if draft is None or draft.stage != AWAITING_PRICE or draft.item_id != item_id:
            return Step("stale")
        item = self._linked_item(member, draft)
        if item is None:
            return self._restart(draft)
        return self._submit_price(member, draft, item, amount if amount is not None else Decimal("0"), now_utc=now_utc)

    def ask_manual_price(self, member: Member, *, item_id: str, now_utc: datetime) -> Step:
        """Put the member's draft in the price stage for `item_id` (also used to edit a finished item)."""
        household = require_household(member)
        item = items_service.get_item(household.id, item_id)
        if item is None:
            return Step("not_found")
        draft = self._store.load(member, now_utc=now_utc)
        if draft is None or draft.stage != AWAITING_PRICE or draft.item_id != item_id:
            self._store.start(
                member,
                household_id=household.id,
                now_utc=now_utc,
                stage=AWAITING_PRICE,
                item_id=item_id,
            )
        return Step("ask_price_manual", item=item)

    def _submit_price(
        self,
        member: Member,
        draft: PendingDraft,
        item: Item,
        price: Decimal | None,
        *,
        now_utc: datetime,
    ) -> Step:
        if price is None:
            return Step("price_rejected", item=item)

        with get_session() as session:
            # Deleting the draft is the claim: only one invocation completes it.
            consumed = (
                session.execute(
                    delete(PendingDraft).where(
                        PendingDraft.id == draft.id,
                        PendingDraft.stage == AWAITING_PRICE,
                    )
                ).rowcount
                == 1
            )
            if not consumed:
                return Step("stale")
            row = session.get(Item, item.id)
            if row is None or row.status == "deleted":
                return Step("restart")
            previous = Decimal(row.price_uah or 0)
            row.price_uah = price
            row.updated_at = datetime.utcnow()
            session.flush()

        events = []
        if previous != price:
            events.append(Event("price_updated", row))
        return Step("completed", item=row, events=events)

    # -----------------------
    # Outside the wizard
    # -----------------------

    def add_single(self, member: Member, text: str) -> Step:
        """Legacy one-shot form: `/add <title>` or `/add <title> | <price>`."""
        require_household(member)
        title, sep, price_raw = (text or "").partition("|")
        title = title.strip()
        if not title:
            return Step("title_rejected")
        price = Decimal("0")
        if sep:
            parsed = parse_price(price_raw)
            if parsed is None:
                return Step("price_rejected")
            price = parsed
        item = items_service.create_item(member, title=title, price=price)
        return Step("completed", item=item, events=[Event("item_created", item)])

    def quick_set_price(self, member: Member, *, item_ref: str, raw_price: str) -> Step:
        """`/setprice <id> <amount>`; raises AmbiguousItemId for a short id matching several items."""
        household = require_household(member)
        price = parse_price(raw_price)
        if price is None:
            return Step("price_rejected")
        item = items_service.find_item_by_prefix(household.id, item_ref)
        if item is None:
            return Step("not_found")
        result = items_service.set_price(household.id, item.id, price)
        if result is None:
            return Step("not_found")
        item, previous = result
        events = [Event("price_updated", item)] if previous != price else []
        return Step("completed", item=item, events=events)

    # -----------------------
    # Helpers
    # -----------------------

    def _linked_item(self, member: Member, draft: PendingDraft) -> Item | None:
        if not draft.item_id or not member.household_id:
            return None
        return items_service.get_item(member.household_id, draft.item_id)

    def _restart(self, draft: PendingDraft) -> Step:
        logger.warning(
            "Discarding inconsistent draft %s (stage=%s, item_id=%s)", draft.id, draft.stage, draft.item_id
        )
        self._store.discard(draft.id)
        return Step("restart")
