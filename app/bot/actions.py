from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Union


# Callback data format: action:arg1[:arg2]. Telegram caps it at 64 bytes,
# which fits a uuid item id plus a short tag.

NO_CATEGORY = "-"


@dataclass(frozen=True)
class PickCategory:
    item_id: str
    category_id: int | None

    def encode(self) -> str:
        cat = NO_CATEGORY if self.category_id is None else str(self.category_id)
        return f"setcat:{self.item_id}:{cat}"


@dataclass(frozen=True)
class PickPrice:
    item_id: str
    amount: Decimal

    def encode(self) -> str:
        return f"price:{self.item_id}:{self.amount}"


@dataclass(frozen=True)
class SkipPrice:
    item_id: str

    def encode(self) -> str:
        return f"skipprice:{self.item_id}"


@dataclass(frozen=True)
class AskPrice:
    item_id: str

    def encode(self) -> str:
        return f"askprice:{self.item_id}"


@dataclass(frozen=True)
class ToggleStatus:
    item_id: str

    def encode(self) -> str:
        return f"toggle:{self.item_id}"


@dataclass(frozen=True)
class DeleteItem:
    item_id: str

    def encode(self) -> str:
        return f"del:{self.item_id}"


@dataclass(frozen=True)
class ShowCategory:
    category_id: int

    def encode(self) -> str:
        return f"showcat:{self.category_id}"


Action = Union[PickCategory, PickPrice, SkipPrice, AskPrice, ToggleStatus, DeleteItem, ShowCategory]


def _int(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def parse_action(data: str | None) -> Action | None:
    """Decode a button payload; None for anything malformed or unknown."""
    parts = (data or "").split(":")
    tag, args = parts[0], parts[1:]
    if any(not a for a in args):
        return None

    if tag == "setcat" and len(args) == 2:
        if args[1] == NO_CATEGORY:
            return PickCategory(item_id=args[0], category_id=None)
        cat_id = _int(args[1])
        return PickCategory(item_id=args[0], category_id=cat_id) if cat_id is not None else None
    if tag == "price" and len(args) == 2:
        try:
            amount = Decimal(args[1])
        except InvalidOperation:
            return None
        if not amount.is_finite() or amount < 0:
            return None
        return PickPrice(item_id=args[0], amount=amount)
    if tag == "showcat" and len(args) == 1:
        cat_id = _int(args[0])
        return ShowCategory(category_id=cat_id) if cat_id is not None else None
    if len(args) == 1:
        single = {
            "skipprice": SkipPrice,
            "askprice": AskPrice,
            "toggle": ToggleStatus,
            "del": DeleteItem,
        }.get(tag)
        if single is not None:
            return single(item_id=args[0])
    return None
