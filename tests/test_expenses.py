from tests.helpers import PURCHASE_DAY, auth_headers, create_product, create_supplier, owner_token


def _create_expense(client, token: str, *, category: str, amount: float, expense_date: str) -> str:
    res = client.post(
        "/expenses",
        json={"category": category, "amount": amount, "expense_date": expense_date},
        headers=auth_headers(token),
    )
    assert res.status_code == 200, res.text
    return res.json()["id"]


def test_expense_crud_and_filters(test_context):
    client, _ = test_context
    token = owner_token(client, "expense-owner@example.com")
    rent_id = _create_expense(client, token, category="rent", amount=300, expense_date="2026-03-01")
    _create_expense(client, token, category="transport", amount=12.5, expense_date="2026-03-04")

    listed = client.get("/expenses", headers=auth_headers(token))
    assert listed.status_code == 200, listed.text
    assert [item["category"] for item in listed.json()["items"]] == ["transport", "rent"]

    by_category = client.get("/expenses", params={"category": "rent"}, headers=auth_headers(token))
    assert by_category.json()["pagination"]["total"] == 1

    by_date = client.get(
        "/expenses",
        params={"start_date": "2026-03-02", "end_date": "2026-03-31"},
        headers=auth_headers(token),
    )
    assert [item["category"] for item in by_date.json()["items"]] == ["transport"]

    bad_range = client.get(
        "/expenses",
        params={"start_date": "2026-03-05", "end_date": "2026-03-01"},
        headers=auth_headers(token),
    )
    assert bad_range.status_code == 400, bad_range.text

    updated = client.patch(
        f"/expenses/{rent_id}",
        json={"amount": 320, "description": "March rent", "expense_date": "2026-03-02"},
        headers=auth_headers(token),
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["amount"] == 320.0
    assert updated.json()["description"] == "March rent"
    assert updated.json()["expense_date"] == "2026-03-02"

    deleted = client.delete(f"/expenses/{rent_id}", headers=auth_headers(token))
    assert deleted.status_code == 200, deleted.text
    assert client.get("/expenses", headers=auth_headers(token)).json()["pagination"]["total"] == 1

    missing = client.delete(f"/expenses/{rent_id}", headers=auth_headers(token))
    assert missing.status_code == 404, missing.text


def test_expense_amount_must_be_positive(test_context):
    client, _ = test_context
    token = owner_token(client, "expense-validation@example.com")

    res = client.post(
        "/expenses",
        json={"category": "rent", "amount": 0, "expense_date": "2026-03-01"},
        headers=auth_headers(token),
    )
    assert res.status_code == 422, res.text


def test_expense_feed_merges_purchases(test_context):
    client, _ = test_context
    token = owner_token(client, "feed-owner@example.com")
    supplier_id = create_supplier(client, token)
    product_id = create_product(client, token)
    _create_expense(client, token, category="rent", amount=300, expense_date="2026-02-28")
    purchase = client.post(
        "/purchases",
        json={
            "supplier_id": supplier_id,
            "product_id": product_id,
            "quantity": 10,
            "total_cost": 80,
            "purchase_date": PURCHASE_DAY,
        },
        headers=auth_headers(token),
    )
    assert purchase.status_code == 200, purchase.text

    feed = client.get("/expenses/feed", headers=auth_headers(token))
    assert feed.status_code == 200, feed.text
    body = feed.json()
    assert body["total_amount"] == 380.0
    assert body["pagination"]["total"] == 2
    first, second = body["items"]
    assert first["kind"] == "purchase"
    assert first["id"] == purchase.json()["id"]
    assert first["description"] == "10 x Olive Oil 1L"
    assert first["deletable"] is False
    assert second["kind"] == "expense"
    assert second["deletable"] is True

    paged = client.get(
        "/expenses/feed",
        params={"limit": 1, "offset": 1},
        headers=auth_headers(token),
    )
    paged_body = paged.json()
    assert [item["kind"] for item in paged_body["items"]] == ["expense"]
    assert paged_body["pagination"]["has_next"] is False
    assert paged_body["total_amount"] == 380.0

    windowed = client.get(
        "/expenses/feed",
        params={"start_date": PURCHASE_DAY},
        headers=auth_headers(token),
    )
    assert [item["kind"] for item in windowed.json()["items"]] == ["purchase"]

    # purchase rows never show up in the plain expense list
    plain = client.get("/expenses", headers=auth_headers(token))
    assert plain.json()["pagination"]["total"] == 1
