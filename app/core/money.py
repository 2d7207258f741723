from __future__ import annotations

import html
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation


CURRENCY = "₴"
NBSP = "\u00a0"

_RE_AMOUNT = re.compile(r"^(?P<int>\d+)(?:[.,](?P<frac>\d+))?$")
_RE_SPACES = re.compile(r"[\s\u00a0\u202f]+")
_RE_CURRENCY = re.compile(r"(₴|грн\.?|uah)$", re.IGNORECASE)
_CENT = Decimal("0.01")


def parse_price(text: str | None) -> Decimal | None:
    """
    Parse a user-typed amount.

    - Spaces (including NBSP) are thousands separators: `1 500` => 1500
    - One decimal comma or dot: `1500,50` / `1500.50`
    - A trailing currency marker is ignored: `1500₴`, `1500 грн`
    Returns a non-negative Decimal rounded to cents, or None.
    """
    raw = _RE_SPACES.sub("", text or "")
    raw = _RE_CURRENCY.sub("", raw)
    m = _RE_AMOUNT.match(raw)
    if not m:
        return None
    try:
        value = Decimal(f"{m.group('int')}.{m.group('frac') or '0'}")
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _group_thousands(digits: str) -> str:
    out: list[str] = []
    while len(digits) > 3:
        out.insert(0, digits[-3:])
        digits = digits[:-3]
    out.insert(0, digits)
    return NBSP.join(out)


def fmt_money(amount: Decimal | int | float | None) -> str:
    value = Decimal(str(amount or 0)).quantize(_CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, _, frac = f"{abs(value):.2f}".partition(".")
    frac = frac.rstrip("0")
    body = _group_thousands(whole)
    if frac:
        body = f"{body},{frac}"
    return f"{CURRENCY}{NBSP}{sign}{body}"


def escape_html(s: str | None) -> str:
    return html.escape(s or "", quote=True)
