from collections import Counter
from datetime import date

import pytest
from sqlalchemy import select

from stockbook.core.errors import InsufficientStockError
from stockbook.models.inventory import InventoryLedger
from stockbook.models.product import Product
from stockbook.services import stock_ledger_service
from tests.helpers import (
    PURCHASE_DAY,
    SALE_DAY,
    auth_headers,
    create_product,
    create_supplier,
    get_product,
    owner_token,
    stock_check,
)


def _sell(client, token: str, product_id: str, quantity: int, **extra):
    return client.post(
        "/sales",
        json={"product_id": product_id, "quantity": quantity, "sale_date": SALE_DAY, **extra},
        headers=auth_headers(token),
    )


def _buy(client, token: str, supplier_id: str, quantity: int, total_cost: float, **product_ref):
    return client.post(
        "/purchases",
        json={
            "supplier_id": supplier_id,
            "quantity": quantity,
            "total_cost": total_cost,
            "purchase_date": PURCHASE_DAY,
            **product_ref,
        },
        headers=auth_headers(token),
    )


def test_sale_decrements_stock_and_delete_restores_it(test_context):
    client, _ = test_context
    token = owner_token(client, "sale-owner@example.com")
    product_id = create_product(client, token, selling_price=12.5, quantity=10)

    sale_res = _sell(client, token, product_id, 4)
    assert sale_res.status_code == 200, sale_res.text
    sale_body = sale_res.json()
    assert sale_body["amount"] == 50.0
    assert sale_body["remaining_stock"] == 6
    assert get_product(client, token, product_id)["quantity"] == 6

    delete_res = client.delete(f"/sales/{sale_body['id']}", headers=auth_headers(token))
    assert delete_res.status_code == 200, delete_res.text
    assert delete_res.json() == {"id": sale_body["id"], "deleted": True, "restored_stock": 10}
    assert get_product(client, token, product_id)["quantity"] == 10

    check = stock_check(client, token, product_id)
    assert check == {"product_id": product_id, "quantity": 10, "ledger_total": 10, "consistent": True}

    missing = client.get("/sales", headers=auth_headers(token))
    assert missing.json()["pagination"]["total"] == 0


def test_oversell_is_rejected_without_touching_stock(test_context):
    client, _ = test_context
    token = owner_token(client, "oversell-owner@example.com")
    product_id = create_product(client, token, quantity=10)

    oversell = _sell(client, token, product_id, 11)
    assert oversell.status_code == 409, oversell.text
    error = oversell.json()["error"]
    assert error["code"] == "insufficient_stock"
    assert "Available: 10" in error["message"]

    assert get_product(client, token, product_id)["quantity"] == 10
    assert client.get("/sales", headers=auth_headers(token)).json()["pagination"]["total"] == 0
    assert stock_check(client, token, product_id)["consistent"] is True

    exact = _sell(client, token, product_id, 10)
    assert exact.status_code == 200, exact.text
    assert exact.json()["remaining_stock"] == 0

    sold_out = _sell(client, token, product_id, 1)
    assert sold_out.status_code == 409, sold_out.text


def test_deleting_and_re_recording_a_sale_returns_to_the_same_stock(test_context):
    client, _ = test_context
    token = owner_token(client, "roundtrip-owner@example.com")
    product_id = create_product(client, token, quantity=8)

    first = _sell(client, token, product_id, 3)
    assert first.json()["remaining_stock"] == 5

    client.delete(f"/sales/{first.json()['id']}", headers=auth_headers(token))
    again = _sell(client, token, product_id, 3)
    assert again.status_code == 200, again.text
    assert again.json()["remaining_stock"] == 5
    assert stock_check(client, token, product_id)["ledger_total"] == 5


def test_sale_amount_precedence(test_context):
    client, _ = test_context
    token = owner_token(client, "amount-owner@example.com")
    product_id = create_product(client, token, selling_price=10, quantity=20)

    explicit = _sell(client, token, product_id, 2, amount=15)
    assert explicit.json()["amount"] == 15.0

    by_unit_price = _sell(client, token, product_id, 2, unit_price=9)
    assert by_unit_price.json()["amount"] == 18.0

    by_catalog = _sell(client, token, product_id, 2)
    assert by_catalog.json()["amount"] == 20.0


def test_ad_hoc_sale_does_not_touch_stock(test_context):
    client, _ = test_context
    token = owner_token(client, "adhoc-sale-owner@example.com")

    res = client.post(
        "/sales",
        json={"product_name": "Gift wrapping", "quantity": 2, "unit_price": 3, "sale_date": SALE_DAY},
        headers=auth_headers(token),
    )
    assert res.status_code == 200, res.text
    assert res.json()["amount"] == 6.0
    assert res.json()["remaining_stock"] is None

    missing_price = client.post(
        "/sales",
        json={"product_name": "Gift wrapping", "quantity": 2, "sale_date": SALE_DAY},
        headers=auth_headers(token),
    )
    assert missing_price.status_code == 422, missing_price.text

    delete_res = client.delete(f"/sales/{res.json()['id']}", headers=auth_headers(token))
    assert delete_res.status_code == 200, delete_res.text
    assert delete_res.json()["restored_stock"] is None


def test_ad_hoc_purchase_creates_product_and_delete_keeps_it(test_context):
    client, session_local = test_context
    token = owner_token(client, "widget-owner@example.com")
    supplier_id = create_supplier(client, token)

    purchase_res = _buy(
        client,
        token,
        supplier_id,
        5,
        50,
        new_product={"name": "Widget", "selling_price": 15},
    )
    assert purchase_res.status_code == 200, purchase_res.text
    body = purchase_res.json()
    assert body["stock"] == 5
    assert body["cost_per_unit"] == 10.0

    product = get_product(client, token, body["product_id"])
    assert product["name"] == "Widget"
    assert product["quantity"] == 5
    assert product["purchase_price"] == 50.0
    assert product["cost_per_unit"] == 10.0
    assert product["unit_profit"] == 5.0

    delete_res = client.delete(f"/purchases/{body['id']}", headers=auth_headers(token))
    assert delete_res.status_code == 200, delete_res.text
    assert delete_res.json()["remaining_stock"] == 0

    kept = get_product(client, token, body["product_id"])
    assert kept["quantity"] == 0
    assert kept["active"] is True
    assert stock_check(client, token, body["product_id"])["consistent"] is True

    db = session_local()
    try:
        reasons = Counter(
            db.execute(
                select(InventoryLedger.reason).where(InventoryLedger.product_id == body["product_id"])
            ).scalars().all()
        )
    finally:
        db.close()
    assert reasons == Counter({"purchase": 1, "purchase_delete": 1})


def test_purchase_against_existing_product_sets_last_purchase_cost(test_context):
    client, _ = test_context
    token = owner_token(client, "cost-owner@example.com")
    supplier_id = create_supplier(client, token)
    product_id = create_product(client, token, selling_price=12.5, purchase_price=40, quantity=5)
    assert get_product(client, token, product_id)["cost_per_unit"] == 8.0

    res = _buy(client, token, supplier_id, 10, 90, product_id=product_id)
    assert res.status_code == 200, res.text
    assert res.json()["stock"] == 15

    product = get_product(client, token, product_id)
    assert product["purchase_price"] == 90.0
    assert product["cost_per_unit"] == 9.0

    listing = client.get("/purchases", headers=auth_headers(token))
    assert listing.status_code == 200, listing.text
    item = listing.json()["items"][0]
    assert item["supplier_name"] == "Fresh Farms Ltd"
    assert item["product_name"] == "Olive Oil 1L"
    assert item["cost_per_unit"] == 9.0


def test_deleting_a_purchase_whose_units_were_sold_fails_fast(test_context):
    client, _ = test_context
    token = owner_token(client, "negative-owner@example.com")
    supplier_id = create_supplier(client, token)

    purchase = _buy(client, token, supplier_id, 5, 50, new_product={"name": "Widget", "selling_price": 15})
    product_id = purchase.json()["product_id"]
    assert _sell(client, token, product_id, 2).status_code == 200

    delete_res = client.delete(f"/purchases/{purchase.json()['id']}", headers=auth_headers(token))
    assert delete_res.status_code == 409, delete_res.text
    assert delete_res.json()["error"]["code"] == "negative_stock"

    assert get_product(client, token, product_id)["quantity"] == 3
    assert client.get("/purchases", headers=auth_headers(token)).json()["pagination"]["total"] == 1
    assert stock_check(client, token, product_id)["consistent"] is True


def test_purchase_requires_exactly_one_product_reference(test_context):
    client, _ = test_context
    token = owner_token(client, "ref-owner@example.com")
    supplier_id = create_supplier(client, token)
    product_id = create_product(client, token)

    both = _buy(
        client,
        token,
        supplier_id,
        1,
        10,
        product_id=product_id,
        new_product={"name": "Widget", "selling_price": 15},
    )
    assert both.status_code == 422, both.text

    neither = _buy(client, token, supplier_id, 1, 10)
    assert neither.status_code == 422, neither.text

    unknown_supplier = _buy(client, token, "missing-supplier", 1, 10, product_id=product_id)
    assert unknown_supplier.status_code == 404, unknown_supplier.text
    assert get_product(client, token, product_id)["quantity"] == 0


def test_stock_operations_are_tenant_isolated(test_context):
    client, _ = test_context
    owner_a = owner_token(client, "tenant-a@example.com")
    owner_b = owner_token(client, "tenant-b@example.com")
    product_id = create_product(client, owner_a, quantity=10)
    sale_id = _sell(client, owner_a, product_id, 1).json()["id"]

    foreign_sale = _sell(client, owner_b, product_id, 1)
    assert foreign_sale.status_code == 404, foreign_sale.text
    assert foreign_sale.json()["error"]["code"] == "not_found"

    foreign_delete = client.delete(f"/sales/{sale_id}", headers=auth_headers(owner_b))
    assert foreign_delete.status_code == 404, foreign_delete.text

    foreign_stock = client.get(f"/inventory/stock/{product_id}", headers=auth_headers(owner_b))
    assert foreign_stock.status_code == 404, foreign_stock.text

    assert get_product(client, owner_a, product_id)["quantity"] == 9


def test_inactive_product_rejects_new_sales_but_restores_deleted_ones(test_context):
    client, session_local = test_context
    token = owner_token(client, "inactive-owner@example.com")
    product_id = create_product(client, token, quantity=5)
    sale_id = _sell(client, token, product_id, 2).json()["id"]

    assert client.delete(f"/products/{product_id}", headers=auth_headers(token)).status_code == 200

    blocked = _sell(client, token, product_id, 1)
    assert blocked.status_code == 404, blocked.text

    restore = client.delete(f"/sales/{sale_id}", headers=auth_headers(token))
    assert restore.status_code == 200, restore.text
    assert restore.json()["restored_stock"] == 5

    db = session_local()
    try:
        product = db.execute(select(Product).where(Product.id == product_id)).scalar_one()
    finally:
        db.close()
    assert product.active is False
    assert product.quantity == 5


def test_sales_list_filters_and_pagination(test_context):
    client, _ = test_context
    token = owner_token(client, "sales-list-owner@example.com")
    product_id = create_product(client, token, quantity=10)

    for day in ("2026-03-01", "2026-03-02", "2026-03-03"):
        res = client.post(
            "/sales",
            json={"product_id": product_id, "quantity": 1, "sale_date": day},
            headers=auth_headers(token),
        )
        assert res.status_code == 200, res.text

    page = client.get("/sales", params={"limit": 2}, headers=auth_headers(token))
    body = page.json()
    assert body["pagination"] == {"total": 3, "limit": 2, "offset": 0, "count": 2, "has_next": True}
    assert [item["sale_date"] for item in body["items"]] == ["2026-03-03", "2026-03-02"]

    ranged = client.get(
        "/sales",
        params={"start_date": "2026-03-02", "end_date": "2026-03-02"},
        headers=auth_headers(token),
    )
    assert ranged.json()["pagination"]["total"] == 1

    bad_range = client.get(
        "/sales",
        params={"start_date": "2026-03-03", "end_date": "2026-03-01"},
        headers=auth_headers(token),
    )
    assert bad_range.status_code == 400, bad_range.text


def test_stock_mutations_are_audited(test_context):
    client, _ = test_context
    token = owner_token(client, "audit-owner@example.com")
    product_id = create_product(client, token, quantity=3)
    sale_id = _sell(client, token, product_id, 1).json()["id"]
    client.delete(f"/sales/{sale_id}", headers=auth_headers(token))

    logs = client.get("/audit-logs", params={"target_type": "sale"}, headers=auth_headers(token))
    assert logs.status_code == 200, logs.text
    actions = sorted(item["action"] for item in logs.json()["items"])
    assert actions == ["sale.create", "sale.delete"]

    one_sale = client.get(
        "/audit-logs",
        params={"target_type": "sale", "target_id": sale_id, "action": "sale.delete"},
        headers=auth_headers(token),
    )
    assert [item["target_id"] for item in one_sale.json()["items"]] == [sale_id]

    unknown_type = client.get(
        "/audit-logs",
        params={"target_type": "invoice"},
        headers=auth_headers(token),
    )
    assert unknown_type.status_code == 422, unknown_type.text


def test_last_unit_cannot_be_sold_from_two_sessions(test_context):
    client, session_local = test_context
    token = owner_token(client, "last-unit-owner@example.com")
    product_id = create_product(client, token, quantity=1)

    first_db = session_local()
    second_db = session_local()
    try:
        # both sessions have already read quantity 1 before either sale runs
        first = first_db.get(Product, product_id)
        second = second_db.get(Product, product_id)
        assert first.quantity == 1
        assert second.quantity == 1
        business_id = first.business_id

        sold = stock_ledger_service.record_sale(
            first_db,
            business_id=business_id,
            product_id=product_id,
            quantity=1,
            sale_date=date(2026, 3, 2),
        )
        first_db.commit()
        assert sold.stock == 0

        with pytest.raises(InsufficientStockError) as exc_info:
            stock_ledger_service.record_sale(
                second_db,
                business_id=business_id,
                product_id=product_id,
                quantity=1,
                sale_date=date(2026, 3, 2),
            )
        second_db.rollback()
        assert exc_info.value.available == 0
    finally:
        first_db.close()
        second_db.close()

    check = stock_check(client, token, product_id)
    assert check == {"product_id": product_id, "quantity": 0, "ledger_total": 0, "consistent": True}
    assert client.get("/sales", headers=auth_headers(token)).json()["pagination"]["total"] == 1


def test_ledger_stays_consistent_across_mixed_operations(test_context):
    client, session_local = test_context
    token = owner_token(client, "mixed-owner@example.com")
    supplier_id = create_supplier(client, token)
    product_id = create_product(client, token, selling_price=10, quantity=10)

    first_purchase = _buy(client, token, supplier_id, 5, 40, product_id=product_id)
    assert first_purchase.status_code == 200, first_purchase.text

    sale = _sell(client, token, product_id, 4)
    assert sale.status_code == 200, sale.text

    ad_hoc = client.post(
        "/sales",
        json={"product_name": "Delivery fee", "quantity": 1, "amount": 5, "sale_date": SALE_DAY},
        headers=auth_headers(token),
    )
    assert ad_hoc.status_code == 200, ad_hoc.text

    assert client.delete(f"/sales/{sale.json()['id']}", headers=auth_headers(token)).status_code == 200

    second_purchase = _buy(client, token, supplier_id, 3, 30, product_id=product_id)
    assert second_purchase.status_code == 200, second_purchase.text
    deleted = client.delete(
        f"/purchases/{second_purchase.json()['id']}", headers=auth_headers(token)
    )
    assert deleted.status_code == 200, deleted.text

    oversell = _sell(client, token, product_id, 100)
    assert oversell.status_code == 409, oversell.text

    # opening 10 + live purchase 5 - no live sales of this product
    opening, live_purchases, live_sales = 10, 5, 0
    check = stock_check(client, token, product_id)
    assert check["quantity"] == opening + live_purchases - live_sales
    assert check["consistent"] is True

    with session_local() as db:
        reasons = Counter(
            db.execute(
                select(InventoryLedger.reason).where(InventoryLedger.product_id == product_id)
            ).scalars()
        )
    assert reasons == Counter(
        {"opening_stock": 1, "purchase": 2, "sale": 1, "sale_delete": 1, "purchase_delete": 1}
    )
