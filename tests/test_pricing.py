from datetime import date
from decimal import Decimal

from sales_order_service.models import CartLineItem, PriceTier
from sales_order_service.pricing import cart_total, format_amount, line_subtotal, resolve_price

TODAY = date(2025, 3, 1)


def test_no_tiers_returns_base_price(make_item):
    item = make_item(base="123.45", quantity=50)
    assert resolve_price(item, TODAY) == Decimal("123.45")


def test_best_qualifying_tier_wins(tiered_item):
    expected = {1: "100", 4: "100", 5: "90", 9: "90", 10: "80", 250: "80"}
    for qty, price in expected.items():
        item = tiered_item.model_copy(update={"quantity": qty})
        assert resolve_price(item, TODAY) == Decimal(price), qty


def test_expired_tier_is_ignored(make_item):
    item = make_item(
        quantity=10,
        tiers=[
            PriceTier(minQty=5, price=Decimal("90")),
            PriceTier(minQty=10, price=Decimal("80"), expiry=date(2025, 2, 28)),
        ],
    )
    assert resolve_price(item, TODAY) == Decimal("90")


def test_tier_is_active_on_its_expiry_day(make_item):
    item = make_item(quantity=5, tiers=[PriceTier(minQty=5, price=Decimal("90"), expiry=TODAY)])
    assert resolve_price(item, TODAY) == Decimal("90")


def test_duplicate_min_qty_keeps_lower_price(make_item):
    item = make_item(
        quantity=5,
        tiers=[
            PriceTier(minQty=5, price=Decimal("95")),
            PriceTier(minQty=5, price=Decimal("85")),
        ],
    )
    assert len(item.tiers) == 1
    assert resolve_price(item, TODAY) == Decimal("85")


def test_catalog_wire_format_is_accepted():
    item = CartLineItem.model_validate({
        "itemCode": "A-1",
        "itemName": "Martillo",
        "originalPrice": "250.00",
        "taxType": "ISV15",
        "quantity": 12,
        "tiers": [
            {"qty": 12, "price": 230, "percent": 8, "expiry": "2099-12-31T00:00:00"},
            {"qty": 6, "price": 240, "percent": 4, "expiry": ""},
        ],
    })
    assert [t.minQty for t in item.tiers] == [6, 12]
    assert item.tiers[0].expiry is None
    assert item.imageUrl.endswith("/A-1.png")
    assert resolve_price(item, TODAY) == Decimal("230")


def test_internal_precision_keeps_four_digits(make_item):
    item = make_item(base="0.3333", quantity=3)
    assert line_subtotal(item, TODAY) == Decimal("0.9999")
    assert format_amount(line_subtotal(item, TODAY)) == "L. 1.00"


def test_cart_total_is_sum_of_line_subtotals(make_item, tiered_item):
    items = [tiered_item.model_copy(update={"quantity": 9}), make_item(code="SKU2", base="12.50", quantity=4)]
    total = cart_total(items, TODAY)
    assert total == Decimal("810") + Decimal("50")
    assert cart_total(items, TODAY) == total


def test_format_amount_groups_thousands():
    assert format_amount(Decimal("1234567.005")) == "L. 1,234,567.01"
    assert format_amount(Decimal("0")) == "L. 0.00"
