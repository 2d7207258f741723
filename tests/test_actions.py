"""Button payload codec tests."""

from decimal import Decimal

import pytest

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


ITEM = "3f2b6c1e-0000-4000-8000-000000000001"


@pytest.mark.parametrize(
    "action",
    [
        PickCategory(ITEM, 7),
        PickCategory(ITEM, None),
        PickPrice(ITEM, Decimal("1500")),
        SkipPrice(ITEM),
        AskPrice(ITEM),
        ToggleStatus(ITEM),
        DeleteItem(ITEM),
        ShowCategory(3),
    ],
)
def test_encoded_payload_decodes_to_same_action(action):
    """Test that every payload we put on a button decodes back and fits Telegram's limit."""
    data = action.encode()
    assert len(data.encode("utf-8")) <= 64
    assert parse_action(data) == action


@pytest.mark.parametrize(
    "data",
    [
        None,
        "",
        "setcat",
        "setcat:",
        f"setcat:{ITEM}",
        f"setcat:{ITEM}:abc",
        f"setcat:{ITEM}:",
        f"price:{ITEM}",
        f"price:{ITEM}:lots",
        f"price:{ITEM}:-10",
        f"price:{ITEM}:NaN",
        "toggle:",
        "toggle",
        f"toggle:{ITEM}:extra",
        "showcat:x",
        f"launch:{ITEM}",
    ],
)
def test_malformed_payloads_are_rejected(data):
    """Test that malformed or unknown payloads decode to None."""
    assert parse_action(data) is None
