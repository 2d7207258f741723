from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, NoResultFound
from sqlalchemy.orm import Session

from app.db.models import Category, Household, Item, Member
from app.db.session import get_session


logger = logging.getLogger(__name__)

ALPHABET = "23456789" + string.ascii_uppercase.replace("O", "").replace("I", "")  # omit look-alikes
INVITE_CODE_LENGTH = 6

DEFAULT_CATEGORIES: list[tuple[str, str]] = [
    ("Места куда идти с деньгами", "paid_places"),
    ("бесплатные места", "free_places"),
    ("Ресторан", "restaurant"),
    ("Поездка", "trip"),
    ("Вещи", "things"),
    ("Косметика", "cosmetics"),
    ("Игры", "games"),
    ("Страйкбол", "airsoft"),
    ("Прочее", "other"),
]


class DirectoryError(Exception):
    """A precondition of a household operation does not hold."""


class HouseholdRequired(DirectoryError):
    pass


class AlreadyInHousehold(DirectoryError):
    pass


class InviteCodeNotFound(DirectoryError):
    pass


@dataclass(frozen=True)
class BudgetSummary:
    ceiling: Decimal
    active_total: Decimal
    remainder: Decimal


# -----------------------
# Members
# -----------------------


def _find_member(session: Session, telegram_user_id: int) -> Member | None:
    return (
        session.execute(select(Member).where(Member.telegram_user_id == telegram_user_id))
        .scalar_one_or_none()
    )


def _member_row(session: Session, member: Member) -> Member:
    row = session.get(Member, member.id)
    if row is None:
        raise NoResultFound(f"member {member.id} is not stored")
    return row


def get_member(telegram_user_id: int) -> Member | None:
    with get_session() as session:
        return _find_member(session, telegram_user_id)


def resolve_member(telegram_user_id: int, name_hint: str | None = None) -> Member:
    """
    Return the member for a Telegram user, creating it on first contact.

    Two near-simultaneous first messages race on the unique telegram_user_id;
    the loser re-reads the row the winner inserted.
    """
    name = (name_hint or "").strip() or None
    with get_session() as session:
        member = _find_member(session, telegram_user_id)
        if member:
            if name and not member.name:
                member.name = name
            return member

    try:
        with get_session() as session:
            member = Member(telegram_user_id=telegram_user_id, name=name, household_id=None)
            session.add(member)
            session.flush()
            return member
    except IntegrityError:
        logger.info("Member %s was created concurrently; re-reading", telegram_user_id)
        member = get_member(telegram_user_id)
        if member is None:
            raise
        return member


def co_members(household_id: str, excluding_telegram_user_id: int) -> list[Member]:
    with get_session() as session:
        return list(
            session.execute(
                select(Member).where(
                    Member.household_id == household_id,
                    Member.telegram_user_id != excluding_telegram_user_id,
                )
            )
            .scalars()
            .all()
        )


# -----------------------
# Households
# -----------------------


def _gen_code() -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def _seed_categories(session: Session, household_id: str) -> bool:
    exists = (
        session.execute(select(Category.id).where(Category.household_id == household_id).limit(1)).first()
        is not None
    )
    if exists:
        return False
    for name, slug in DEFAULT_CATEGORIES:
        session.add(Category(household_id=household_id, name=name, slug=slug))
    session.flush()
    return True


def ensure_categories(household_id: str) -> bool:
    """Seed the default categories once per household. Returns True if seeded now."""
    with get_session() as session:
        return _seed_categories(session, household_id)


def get_household(household_id: str) -> Household | None:
    with get_session() as session:
        return session.get(Household, household_id)


def require_household(member: Member) -> Household:
    if not member.household_id:
        raise HouseholdRequired()
    household = get_household(member.household_id)
    if household is None:
        raise HouseholdRequired()
    return household


def create_household(member: Member, name: str | None) -> Household:
    with get_session() as session:
        row = _member_row(session, member)
        if row.household_id:
            raise AlreadyInHousehold()

        # Collision is unlikely; the unique index catches a concurrent one.
        for _ in range(12):
            code = _gen_code()
            taken = (
                session.execute(select(Household.id).where(Household.invite_code == code)).scalar_one_or_none()
                is not None
            )
            if not taken:
                break
        else:
            raise RuntimeError("Failed to generate a unique invite code (too many collisions).")

        household = Household(name=(name or "").strip() or None, invite_code=code, budget_uah=Decimal("0"))
        session.add(household)
        session.flush()
        row.household_id = household.id
        _seed_categories(session, household.id)

    member.household_id = household.id
    logger.info("Household %s created by member %s", household.id, member.id)
    return household


def join_household(member: Member, code: str) -> Household:
    normalized = (code or "").strip().upper()
    with get_session() as session:
        row = _member_row(session, member)
        if row.household_id:
            raise AlreadyInHousehold()
        household = (
            session.execute(select(Household).where(Household.invite_code == normalized))
            .scalar_one_or_none()
        )
        if household is None:
            raise InviteCodeNotFound()
        row.household_id = household.id
        _seed_categories(session, household.id)

    member.household_id = household.id
    logger.info("Member %s joined household %s", member.id, household.id)
    return household


# -----------------------
# Categories
# -----------------------


def list_categories(household_id: str) -> list[Category]:
    ensure_categories(household_id)
    with get_session() as session:
        return list(
            session.execute(select(Category).where(Category.household_id == household_id).order_by(Category.id))
            .scalars()
            .all()
        )


def get_category(household_id: str, category_id: int) -> Category | None:
    with get_session() as session:
        cat = session.get(Category, category_id)
        if cat is None or cat.household_id != household_id:
            return None
        return cat


# -----------------------
# Budget
# -----------------------


def set_budget(household_id: str, amount: Decimal) -> Household:
    if amount < 0:
        raise ValueError("budget must be non-negative")
    with get_session() as session:
        household = session.get(Household, household_id)
        if household is None:
            raise HouseholdRequired()
        household.budget_uah = amount
        session.flush()
        return household


def budget_summary(household_id: str) -> BudgetSummary:
    with get_session() as session:
        household = session.get(Household, household_id)
        if household is None:
            raise HouseholdRequired()
        prices = (
            session.execute(
                select(Item.price_uah).where(Item.household_id == household_id, Item.status == "active")
            )
            .scalars()
            .all()
        )
    ceiling = Decimal(household.budget_uah or 0)
    total = sum((Decimal(p or 0) for p in prices), Decimal("0"))
    return BudgetSummary(ceiling=ceiling, active_total=total, remainder=ceiling - total)
