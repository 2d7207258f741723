from __future__ import annotations

from datetime import datetime, timedelta
from typing import Literal
from zoneinfo import ZoneInfo

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from app.db.models import Member, PendingDraft
from app.db.session import get_session


UTC = ZoneInfo("UTC")

Stage = Literal["awaiting_title", "awaiting_category", "awaiting_price"]

AWAITING_TITLE: Stage = "awaiting_title"
AWAITING_CATEGORY: Stage = "awaiting_category"
AWAITING_PRICE: Stage = "awaiting_price"
STAGES: tuple[Stage, ...] = (AWAITING_TITLE, AWAITING_CATEGORY, AWAITING_PRICE)


def _as_utc_aware(dt: datetime) -> datetime:
    """
    Normalize datetimes for safe comparisons & persistence.

    - If `dt` is naive, we assume it is UTC and attach UTC tzinfo.
    - If `dt` is aware, we convert it to UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class DraftStore:
    """
    Wizard drafts, one row per member, kept in the database only.

    Every webhook invocation reloads the draft from here; nothing is cached
    in-process.
    """

    def __init__(self, *, ttl_hours: int = 24) -> None:
        self._ttl = timedelta(hours=ttl_hours)

    def start(
        self,
        member: Member,
        *,
        household_id: str,
        now_utc: datetime,
        stage: Stage = AWAITING_TITLE,
        item_id: str | None = None,
    ) -> PendingDraft:
        """Purge any previous draft of `member` and create a fresh one."""
        now = _as_utc_aware(now_utc)
        with get_session() as session:
            session.execute(delete(PendingDraft).where(PendingDraft.member_id == member.id))
            session.flush()
            draft = PendingDraft(
                member_id=member.id,
                household_id=household_id,
                stage=stage,
                item_id=item_id,
                created_at=now,
                updated_at=now,
                expires_at=now + self._ttl,
            )
            session.add(draft)
            session.flush()
            return draft

    def load(self, member: Member, *, now_utc: datetime) -> PendingDraft | None:
        now = _as_utc_aware(now_utc)
        with get_session() as session:
            row = (
                session.execute(select(PendingDraft).where(PendingDraft.member_id == member.id))
                .scalar_one_or_none()
            )
            if not row:
                return None
            if _as_utc_aware(row.expires_at) < now or row.stage not in STAGES:
                session.delete(row)
                return None
            return row

    def advance(
        self,
        draft_id: str,
        *,
        from_stage: Stage,
        to_stage: Stage,
        now_utc: datetime,
        session: Session | None = None,
        **fields,
    ) -> bool:
        """
        Move a draft from `from_stage` to `to_stage` only if it is still there.

        Returns False when another invocation already moved (or removed) it.
        Pass `session` to make the advance part of a larger transaction.
        """
        now = _as_utc_aware(now_utc)
        stmt = (
            update(PendingDraft)
            .where(PendingDraft.id == draft_id, PendingDraft.stage == from_stage)
            .values(stage=to_stage, updated_at=now, expires_at=now + self._ttl, **fields)
            .execution_options(synchronize_session=False)
        )
        if session is not None:
            return session.execute(stmt).rowcount == 1
        with get_session() as own:
            return own.execute(stmt).rowcount == 1

    def discard(self, draft_id: str) -> bool:
        with get_session() as session:
            return session.execute(delete(PendingDraft).where(PendingDraft.id == draft_id)).rowcount == 1

    def clear(self, member: Member) -> bool:
        with get_session() as session:
            return (
                session.execute(delete(PendingDraft).where(PendingDraft.member_id == member.id)).rowcount
                > 0
            )
