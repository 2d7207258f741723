"""Item lifecycle and listing tests."""

from decimal import Decimal

import pytest

from app.db.models import Item
from app.db.session import get_session
from app.services import households, items
from app.services.items import AmbiguousItemId


def test_toggle_status_twice_restores(couple):
    """Test that toggling active/done twice returns the original status."""
    alice, _, household = couple
    item = items.create_item(alice, title="Плед")
    assert items.toggle_status(household.id, item.id).status == "done"
    assert items.toggle_status(household.id, item.id).status == "active"


def test_toggle_refreshes_updated_at(couple):
    """Test that every mutation refreshes updated_at."""
    alice, _, household = couple
    item = items.create_item(alice, title="Плед")
    toggled = items.toggle_status(household.id, item.id)
    assert toggled.updated_at >= item.updated_at


def test_soft_delete_hides_but_keeps_row(couple):
    """Test that deleted items vanish from lists but stay in storage."""
    alice, _, household = couple
    keep = items.create_item(alice, title="Кроссовки")
    gone = items.create_item(alice, title="Зонт")
    assert items.soft_delete(household.id, gone.id).status == "deleted"

    listed = items.list_items(household.id)
    assert [it.id for it in listed] == [keep.id]
    with get_session() as session:
        assert session.get(Item, gone.id).status == "deleted"


def test_deleted_item_is_terminal(couple):
    """Test that a deleted item cannot be toggled, repriced or deleted again."""
    alice, _, household = couple
    item = items.create_item(alice, title="Зонт")
    items.soft_delete(household.id, item.id)
    assert items.toggle_status(household.id, item.id) is None
    assert items.set_price(household.id, item.id, Decimal("10")) is None
    assert items.soft_delete(household.id, item.id) is None
    assert items.get_item(household.id, item.id) is None
    assert items.get_item(household.id, item.id, include_deleted=True).status == "deleted"


def test_items_are_household_scoped(couple):
    """Test that another household's member cannot touch an item."""
    alice, _, household = couple
    item = items.create_item(alice, title="Кроссовки")
    eve = households.resolve_member(2001, "Eve")
    other = households.create_household(eve, "Other")
    assert items.get_item(other.id, item.id) is None
    assert items.toggle_status(other.id, item.id) is None
    assert items.get_item(household.id, item.id).status == "active"


def test_set_price_returns_previous(couple):
    """Test that set_price reports the price it replaced."""
    alice, _, household = couple
    item = items.create_item(alice, title="Кроссовки", price=Decimal("100"))
    updated, previous = items.set_price(household.id, item.id, Decimal("1500"))
    assert previous == Decimal("100")
    assert updated.price_uah == Decimal("1500")


def test_list_filter_matches_category_and_title(couple):
    """Test the /list filter against category names, slugs and titles."""
    alice, _, household = couple
    cats = {c.slug: c for c in households.list_categories(household.id)}
    shoes = items.create_item(alice, title="Кроссовки")
    items.set_category(household.id, shoes.id, cats["things"].id)
    trip = items.create_item(alice, title="Карпаты")
    items.set_category(household.id, trip.id, cats["trip"].id)
    items.create_item(alice, title="Что-то без категории")

    assert [it.id for it in items.list_items(household.id, query="вещи")] == [shoes.id]
    assert [it.id for it in items.list_items(household.id, query="TRIP")] == [trip.id]
    assert [it.id for it in items.list_items(household.id, query="карп")] == [trip.id]
    assert len(items.list_items(household.id)) == 3


def test_find_item_by_prefix(couple):
    """Test resolving ids as shown in lists."""
    alice, _, household = couple
    item = items.create_item(alice, title="Кроссовки")
    assert items.find_item_by_prefix(household.id, items.short_id(item)).id == item.id
    assert items.find_item_by_prefix(household.id, f"id:{items.short_id(item)}").id == item.id
    assert items.find_item_by_prefix(household.id, item.id.upper()).id == item.id
    assert items.find_item_by_prefix(household.id, "zzzzzz") is None
    assert items.find_item_by_prefix(household.id, "") is None


def test_find_item_by_ambiguous_prefix(couple):
    """Test that a prefix shared by two items is refused."""
    alice, _, household = couple
    with get_session() as session:
        for suffix in ("1", "2"):
            session.add(
                Item(
                    id=f"abcdef00-0000-4000-8000-00000000000{suffix}",
                    household_id=household.id,
                    title=f"Item {suffix}",
                    created_by=alice.id,
                )
            )
    with pytest.raises(AmbiguousItemId):
        items.find_item_by_prefix(household.id, "abcdef")


def test_category_counts(couple):
    """Test per-category counts of live items."""
    alice, _, household = couple
    cat = households.list_categories(household.id)[0]
    a = items.create_item(alice, title="A")
    b = items.create_item(alice, title="B")
    items.set_category(household.id, a.id, cat.id)
    items.set_category(household.id, b.id, cat.id)
    items.soft_delete(household.id, b.id)
    items.create_item(alice, title="C")

    counts = items.category_counts(household.id)
    assert counts[cat.id] == 1
    assert counts[None] == 1
    assert [it.id for it in items.items_in_category(household.id, cat.id)] == [a.id]


def test_attach_image_commits_with_caller_session(couple):
    """Test that an image staged in a session is stored on commit and read back first-in."""
    alice, _, _ = couple
    item = items.create_item(alice, title="Платье")
    assert items.first_image(item.id) is None
    with get_session() as session:
        items.attach_image(session, item.id, "AgADfirst")
        items.attach_image(session, item.id, "AgADsecond")
    assert items.first_image(item.id) == "AgADfirst"
