from tests.helpers import PURCHASE_DAY, auth_headers, create_product, create_supplier, owner_token


def test_supplier_crud(test_context):
    client, _ = test_context
    token = owner_token(client, "supplier-owner@example.com")
    supplier_id = create_supplier(client, token)
    create_supplier(client, token, name="Grain House")

    listed = client.get("/suppliers", headers=auth_headers(token))
    assert listed.status_code == 200, listed.text
    assert [item["name"] for item in listed.json()["items"]] == ["Fresh Farms Ltd", "Grain House"]

    searched = client.get("/suppliers", params={"q": "grain"}, headers=auth_headers(token))
    assert [item["name"] for item in searched.json()["items"]] == ["Grain House"]

    updated = client.patch(
        f"/suppliers/{supplier_id}",
        json={"purchase_days": " Tue ", "product_types": ""},
        headers=auth_headers(token),
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["purchase_days"] == "Tue"
    assert updated.json()["product_types"] is None
    assert updated.json()["name"] == "Fresh Farms Ltd"

    deleted = client.delete(f"/suppliers/{supplier_id}", headers=auth_headers(token))
    assert deleted.status_code == 200, deleted.text
    assert deleted.json() == {"ok": True, "id": supplier_id}

    missing = client.patch(
        f"/suppliers/{supplier_id}",
        json={"name": "Gone"},
        headers=auth_headers(token),
    )
    assert missing.status_code == 404, missing.text


def test_supplier_requires_name(test_context):
    client, _ = test_context
    token = owner_token(client, "supplier-name@example.com")

    res = client.post("/suppliers", json={"name": "  "}, headers=auth_headers(token))
    assert res.status_code == 422, res.text


def test_supplier_referenced_by_purchase_cannot_be_deleted(test_context):
    client, _ = test_context
    token = owner_token(client, "supplier-conflict@example.com")
    supplier_id = create_supplier(client, token)
    product_id = create_product(client, token)

    purchase = client.post(
        "/purchases",
        json={
            "supplier_id": supplier_id,
            "product_id": product_id,
            "quantity": 3,
            "total_cost": 24,
            "purchase_date": PURCHASE_DAY,
        },
        headers=auth_headers(token),
    )
    assert purchase.status_code == 200, purchase.text

    blocked = client.delete(f"/suppliers/{supplier_id}", headers=auth_headers(token))
    assert blocked.status_code == 409, blocked.text
    assert "1 purchase(s)" in blocked.json()["error"]["message"]

    removed = client.delete(
        f"/purchases/{purchase.json()['id']}",
        headers=auth_headers(token),
    )
    assert removed.status_code == 200, removed.text

    allowed = client.delete(f"/suppliers/{supplier_id}", headers=auth_headers(token))
    assert allowed.status_code == 200, allowed.text


def test_suppliers_are_tenant_isolated(test_context):
    client, _ = test_context
    owner_a = owner_token(client, "supplier-a@example.com")
    owner_b = owner_token(client, "supplier-b@example.com")
    supplier_id = create_supplier(client, owner_a)

    assert client.get("/suppliers", headers=auth_headers(owner_b)).json()["items"] == []
    res = client.delete(f"/suppliers/{supplier_id}", headers=auth_headers(owner_b))
    assert res.status_code == 404, res.text
