from tests.helpers import SALE_DAY, auth_headers, create_product, get_product, owner_token, stock_check


def _ledger_reasons(client, token: str, product_id: str) -> list[str]:
    res = client.get(
        "/inventory/ledger",
        params={"product_id": product_id},
        headers=auth_headers(token),
    )
    assert res.status_code == 200, res.text
    return [row["reason"] for row in res.json()["items"]]


def test_create_product_records_opening_stock(test_context):
    client, _ = test_context
    token = owner_token(client, "catalog-owner@example.com")
    product_id = create_product(client, token, purchase_price=40, quantity=5)

    product = get_product(client, token, product_id)
    assert product["quantity"] == 5
    assert product["cost_per_unit"] == 8.0
    assert product["unit_profit"] == 4.5
    assert product["active"] is True
    assert _ledger_reasons(client, token, product_id) == ["opening_stock"]

    empty_id = create_product(client, token, name="Rice 5kg")
    assert get_product(client, token, empty_id)["cost_per_unit"] is None
    assert _ledger_reasons(client, token, empty_id) == []


def test_create_product_validates_payload(test_context):
    client, _ = test_context
    token = owner_token(client, "catalog-validation@example.com")

    blank = client.post(
        "/products",
        json={"name": "   ", "selling_price": 5},
        headers=auth_headers(token),
    )
    assert blank.status_code == 422, blank.text

    negative = client.post(
        "/products",
        json={"name": "Salt", "selling_price": 5, "quantity": -1},
        headers=auth_headers(token),
    )
    assert negative.status_code == 422, negative.text
    assert negative.json()["error"]["details"][0]["field"] == "quantity"


def test_patch_quantity_is_recorded_as_adjustment(test_context):
    client, _ = test_context
    token = owner_token(client, "adjust-owner@example.com")
    product_id = create_product(client, token, purchase_price=50, quantity=10)

    sale = client.post(
        "/sales",
        json={"product_id": product_id, "quantity": 4, "sale_date": SALE_DAY},
        headers=auth_headers(token),
    )
    assert sale.status_code == 200, sale.text

    patched = client.patch(
        f"/products/{product_id}",
        json={"quantity": 8},
        headers=auth_headers(token),
    )
    assert patched.status_code == 200, patched.text
    assert patched.json()["quantity"] == 8

    check = stock_check(client, token, product_id)
    assert check == {"product_id": product_id, "quantity": 8, "ledger_total": 8, "consistent": True}
    assert sorted(_ledger_reasons(client, token, product_id)) == ["adjustment", "opening_stock", "sale"]

    lowered = client.patch(
        f"/products/{product_id}",
        json={"quantity": 0},
        headers=auth_headers(token),
    )
    assert lowered.status_code == 200, lowered.text
    assert stock_check(client, token, product_id)["ledger_total"] == 0


def test_patch_purchase_price_recomputes_cost_per_unit(test_context):
    client, _ = test_context
    token = owner_token(client, "price-owner@example.com")
    product_id = create_product(client, token, purchase_price=40, quantity=5)

    patched = client.patch(
        f"/products/{product_id}",
        json={"purchase_price": 30, "selling_price": 9},
        headers=auth_headers(token),
    )
    assert patched.status_code == 200, patched.text
    body = patched.json()
    assert body["cost_per_unit"] == 6.0
    assert body["selling_price"] == 9.0
    assert body["unit_profit"] == 3.0

    empty = client.patch(f"/products/{product_id}", json={}, headers=auth_headers(token))
    assert empty.status_code == 422, empty.text


def test_duplicate_product_copies_fields(test_context):
    client, _ = test_context
    token = owner_token(client, "duplicate-owner@example.com")
    product_id = create_product(client, token, purchase_price=40, quantity=5)

    copy = client.post(f"/products/{product_id}/duplicate", headers=auth_headers(token))
    assert copy.status_code == 200, copy.text
    copied = get_product(client, token, copy.json()["id"])
    assert copied["name"] == "Olive Oil 1L (Copy)"
    assert copied["quantity"] == 5
    assert copied["selling_price"] == 12.5
    assert copied["cost_per_unit"] == 8.0

    renamed = client.post(
        f"/products/{product_id}/duplicate",
        json={"name": "Olive Oil 500ml", "quantity": 0},
        headers=auth_headers(token),
    )
    assert renamed.status_code == 200, renamed.text
    renamed_product = get_product(client, token, renamed.json()["id"])
    assert renamed_product["name"] == "Olive Oil 500ml"
    assert renamed_product["quantity"] == 0

    source = get_product(client, token, product_id)
    assert source["quantity"] == 5


def test_delete_product_deactivates_it(test_context):
    client, _ = test_context
    token = owner_token(client, "delete-product-owner@example.com")
    keep_id = create_product(client, token, name="Rice 5kg")
    drop_id = create_product(client, token, quantity=2)

    deleted = client.delete(f"/products/{drop_id}", headers=auth_headers(token))
    assert deleted.status_code == 200, deleted.text
    assert deleted.json() == {"ok": True, "id": drop_id}

    listed = client.get("/products", headers=auth_headers(token))
    assert [item["id"] for item in listed.json()["items"]] == [keep_id]

    with_inactive = client.get(
        "/products",
        params={"include_inactive": True},
        headers=auth_headers(token),
    )
    assert with_inactive.json()["pagination"]["total"] == 2
    assert get_product(client, token, drop_id)["active"] is False

    again = client.delete(f"/products/{drop_id}", headers=auth_headers(token))
    assert again.status_code == 404, again.text
    assert again.json()["error"]["code"] == "not_found"


def test_list_products_search_and_pagination(test_context):
    client, _ = test_context
    token = owner_token(client, "search-owner@example.com")
    for name in ("Olive Oil 1L", "Olive Oil 5L", "Rice 5kg"):
        create_product(client, token, name=name)

    res = client.get(
        "/products",
        params={"q": "olive", "limit": 1},
        headers=auth_headers(token),
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["pagination"]["total"] == 2
    assert body["pagination"]["count"] == 1
    assert body["pagination"]["has_next"] is True
    assert "Olive" in body["items"][0]["name"]
